"""
Stripe webhook verification and event handlers.

Events are verified against ``STRIPE_WEBHOOK_SECRET`` before anything touches
the database. Handlers mirror Stripe state onto ``Subscription`` rows and add
their changes to the caller's session; the route commits once per event.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import stripe
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.audit import AuditService
from simplegrowth.billing.stripe_client import PLANS
from simplegrowth.models import Subscription, utcnow

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


class InvalidWebhook(Exception):
    """Missing or invalid Stripe signature, or an unreadable payload."""


def verify_event(payload: bytes, signature: Optional[str], secret: str) -> Dict[str, Any]:
    """Check the Stripe-Signature header and return the decoded event."""
    if not signature:
        raise InvalidWebhook("No signature")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature, secret, SIGNATURE_TOLERANCE_SECONDS
        )
        event = json.loads(payload)
    except stripe.SignatureVerificationError as e:
        raise InvalidWebhook("Invalid signature") from e
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidWebhook("Invalid payload") from e

    if not isinstance(event, dict) or "type" not in event:
        raise InvalidWebhook("Invalid payload")
    return event


def _from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


async def handle_checkout_completed(db: AsyncSession, session: Dict[str, Any]) -> None:
    """Activate the plan bought in a completed checkout."""
    metadata = session.get("metadata") or {}
    organization_id = metadata.get("organization_id")
    plan = metadata.get("plan")
    if not organization_id or plan not in PLANS:
        logger.warning(f"Checkout session {session.get('id')} has no usable metadata; ignoring")
        return

    plan_config = PLANS[plan]
    stripe_subscription_id = session.get("subscription")

    subscription = None
    if stripe_subscription_id:
        result = await db.execute(
            select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
        )
        subscription = result.scalar_one_or_none()
    if subscription is None:
        # A trial row from onboarding converts in place
        result = await db.execute(
            select(Subscription).where(
                Subscription.organization_id == organization_id,
                Subscription.plan == plan,
                Subscription.stripe_subscription_id.is_(None),
            )
        )
        subscription = result.scalars().first()
    if subscription is None:
        subscription = Subscription(organization_id=organization_id, plan=plan)
        db.add(subscription)

    subscription.stripe_customer_id = session.get("customer")
    subscription.stripe_subscription_id = stripe_subscription_id
    subscription.stripe_price_id = plan_config.price_id
    subscription.status = "active"
    subscription.price_monthly = plan_config.amount
    await db.flush()

    audit = AuditService(db, organization_id=organization_id, source="stripe_webhook")
    await audit.log(
        "subscription", subscription.id, "subscription_activated",
        new_value={"plan": plan, "status": "active"},
    )


async def handle_subscription_updated(db: AsyncSession, data: Dict[str, Any]) -> None:
    """Copy status and billing period from Stripe onto a known subscription."""
    result = await db.execute(
        select(Subscription).where(Subscription.stripe_subscription_id == data.get("id"))
    )
    subscription = result.scalar_one_or_none()
    if not subscription:
        # Checkout completion has not been processed yet
        return

    old_status = subscription.status
    subscription.status = data.get("status", subscription.status)
    period_start = _from_timestamp(data.get("current_period_start"))
    period_end = _from_timestamp(data.get("current_period_end"))
    if period_start:
        subscription.current_period_start = period_start
    if period_end:
        subscription.current_period_end = period_end
    subscription.canceled_at = _from_timestamp(data.get("canceled_at"))

    if old_status != subscription.status:
        audit = AuditService(db, organization_id=subscription.organization_id, source="stripe_webhook")
        await audit.log_update("subscription", subscription.id, {"status": (old_status, subscription.status)})


async def handle_subscription_deleted(db: AsyncSession, data: Dict[str, Any]) -> None:
    await db.execute(
        update(Subscription)
        .where(Subscription.stripe_subscription_id == data.get("id"))
        .values(status="canceled", canceled_at=utcnow())
    )


async def _set_status_for_invoice(db: AsyncSession, invoice: Dict[str, Any], status: str) -> None:
    stripe_subscription_id = invoice.get("subscription")
    if not stripe_subscription_id:
        return
    await db.execute(
        update(Subscription)
        .where(Subscription.stripe_subscription_id == stripe_subscription_id)
        .values(status=status)
    )


async def handle_invoice_paid(db: AsyncSession, invoice: Dict[str, Any]) -> None:
    await _set_status_for_invoice(db, invoice, "active")


async def handle_payment_failed(db: AsyncSession, invoice: Dict[str, Any]) -> None:
    await _set_status_for_invoice(db, invoice, "past_due")


EVENT_HANDLERS: Dict[str, Callable[[AsyncSession, Dict[str, Any]], Awaitable[None]]] = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_updated,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.paid": handle_invoice_paid,
    "invoice.payment_failed": handle_payment_failed,
}


async def process_event(db: AsyncSession, event: Dict[str, Any]) -> bool:
    """
    Dispatch a verified event and commit.

    Returns False for event types we do not handle.
    """
    handler = EVENT_HANDLERS.get(event["type"])
    if handler is None:
        logger.debug(f"Ignoring Stripe event {event['type']}")
        return False

    data = (event.get("data") or {}).get("object") or {}
    await handler(db, data)
    await db.commit()
    logger.info(f"Processed Stripe event {event.get('id')} ({event['type']})")
    return True
