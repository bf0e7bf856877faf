"""Billing routes: Stripe checkout, customer portal, subscriptions, success fees and webhook."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import get_current_user, require_organization
from simplegrowth.billing import stripe_client, webhooks
from simplegrowth.billing.schemas import (
    CheckoutRequest,
    SessionUrlResponse,
    SubscriptionListResponse,
    SubscriptionResponse,
    SuccessFeeRequest,
    SuccessFeeResponse,
    WebhookResponse,
)
from simplegrowth.config import settings
from simplegrowth.database import get_db
from simplegrowth.middleware.rate_limit import limiter, LIMITS
from simplegrowth.models import AuditLog, Invoice, Subscription, User, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

VISIBLE_STATUSES = ("active", "trialing", "past_due")


async def _find_customer_id(db: AsyncSession, organization_id: str):
    result = await db.execute(
        select(Subscription.stripe_customer_id)
        .where(
            Subscription.organization_id == organization_id,
            Subscription.stripe_customer_id.is_not(None),
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


@router.post("/checkout", response_model=SessionUrlResponse)
async def create_checkout(
    data: CheckoutRequest,
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """Start a Stripe checkout for a monthly plan. Re-uses the organization's Stripe customer."""
    result = await db.execute(
        select(Subscription).where(
            Subscription.organization_id == organization_id,
            Subscription.plan == data.plan,
            Subscription.status == "active",
        )
    )
    if result.scalars().first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Already subscribed to this plan",
        )

    customer_id = await _find_customer_id(db, organization_id)
    base_url = settings.FRONTEND_URL
    try:
        session = await stripe_client.create_checkout_session(
            organization_id=organization_id,
            plan=data.plan,
            customer_id=customer_id,
            success_url=f"{base_url}/portal/billing?success=true",
            cancel_url=f"{base_url}/portal/billing?canceled=true",
        )
    except Exception:
        logger.exception(f"Failed to create checkout session for {organization_id}")
        raise HTTPException(status_code=500, detail="Failed to create checkout session")

    return SessionUrlResponse(url=session["url"])


@router.post("/portal", response_model=SessionUrlResponse)
async def create_portal(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open the Stripe customer portal for the organization's billing account."""
    customer_id = None
    if current_user.organization_id:
        customer_id = await _find_customer_id(db, current_user.organization_id)
    if not customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No billing account found",
        )

    try:
        session = await stripe_client.create_portal_session(
            customer_id=customer_id,
            return_url=f"{settings.FRONTEND_URL}/portal/billing",
        )
    except Exception:
        logger.exception(f"Failed to create portal session for {customer_id}")
        raise HTTPException(status_code=500, detail="Failed to create portal session")

    return SessionUrlResponse(url=session["url"])


@router.get("/subscriptions", response_model=SubscriptionListResponse)
async def list_subscriptions(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active, trialing and past-due subscriptions, newest first."""
    if not current_user.organization_id:
        return SubscriptionListResponse(subscriptions=[])

    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.organization_id == current_user.organization_id,
            Subscription.status.in_(VISIBLE_STATUSES),
        )
        .order_by(Subscription.created_at.desc())
    )
    return SubscriptionListResponse(
        subscriptions=[SubscriptionResponse.model_validate(s) for s in result.scalars().all()]
    )


@router.post("/subscriptions/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel a subscription.

    Stripe-backed subscriptions are canceled at Stripe first; trials from
    onboarding have nothing to cancel there and only change locally.
    """
    result = await db.execute(
        select(Subscription).where(
            Subscription.id == subscription_id,
            Subscription.organization_id == organization_id,
        )
    )
    subscription = result.scalar_one_or_none()
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    if subscription.status == "canceled":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subscription is already canceled",
        )

    if subscription.stripe_subscription_id:
        try:
            await stripe_client.cancel_subscription(subscription.stripe_subscription_id)
        except Exception:
            logger.exception(f"Failed to cancel Stripe subscription {subscription.stripe_subscription_id}")
            raise HTTPException(status_code=500, detail="Failed to cancel subscription")

    old_status = subscription.status
    subscription.status = "canceled"
    subscription.canceled_at = utcnow()

    audit = AuditService(db, user_id=current_user.id, organization_id=organization_id)
    await audit.log_update("subscription", subscription.id, {"status": (old_status, "canceled")})
    await db.commit()

    return SubscriptionResponse.model_validate(subscription)


@router.post("/success-fee", response_model=SuccessFeeResponse)
async def bill_success_fee(
    data: SuccessFeeRequest,
    current_user: User = Depends(get_current_user),
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """
    Bill the Cash Flow AI success fee for a recovered invoice.

    The fee is a percentage of what was collected and is charged once per
    invoice to the organization's Stripe customer.
    """
    if not stripe_client.is_configured():
        raise HTTPException(status_code=500, detail="Stripe not configured")

    result = await db.execute(
        select(Invoice).where(
            Invoice.id == data.invoice_id,
            Invoice.organization_id == organization_id,
        )
    )
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    if invoice.status != "paid" or not invoice.amount_paid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invoice has not been recovered",
        )

    already_billed = await db.execute(
        select(AuditLog.id).where(
            AuditLog.entity_type == "invoice",
            AuditLog.entity_id == invoice.id,
            AuditLog.action == "success_fee_billed",
        )
    )
    if already_billed.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Success fee already billed for this invoice",
        )

    customer_id = await _find_customer_id(db, organization_id)
    if not customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No billing account found",
        )

    fee = stripe_client.calculate_success_fee(invoice.amount_paid)
    try:
        stripe_invoice = await stripe_client.create_success_fee_invoice(
            customer_id=customer_id,
            amount=fee,
            description=f"Cash Flow AI success fee for invoice {invoice.invoice_number}",
        )
    except Exception:
        logger.exception(f"Failed to bill success fee for invoice {invoice.id}")
        raise HTTPException(status_code=500, detail="Failed to create success fee invoice")

    audit = AuditService(db, user_id=current_user.id, organization_id=organization_id)
    await audit.log(
        "invoice", invoice.id, "success_fee_billed",
        new_value={"fee": fee, "recovered_amount": invoice.amount_paid},
        extra_data={"stripe_invoice_id": stripe_invoice["id"]},
    )
    await db.commit()

    return SuccessFeeResponse(
        invoice_id=invoice.id,
        recovered_amount=invoice.amount_paid,
        fee=fee,
        stripe_invoice_id=stripe_invoice["id"],
    )


@router.post("/webhook", response_model=WebhookResponse)
@limiter.limit(LIMITS["webhook"])
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Receive Stripe events.

    The signature is checked before any database access; a bad or missing
    signature is answered with 400 and nothing is written.
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise HTTPException(status_code=500, detail="Stripe not configured")

    payload = await request.body()
    try:
        event = webhooks.verify_event(
            payload,
            request.headers.get("stripe-signature"),
            settings.STRIPE_WEBHOOK_SECRET,
        )
    except webhooks.InvalidWebhook as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        await webhooks.process_event(db, event)
    except Exception:
        await db.rollback()
        logger.exception(f"Stripe webhook handler failed for {event.get('type')}")
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    return WebhookResponse()
