"""Onboarding API routes - organization setup then product selection."""
from datetime import timedelta
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import get_current_user
from simplegrowth.billing.stripe_client import PLANS
from simplegrowth.database import get_db
from simplegrowth.models import Organization, Subscription, User, utcnow
from simplegrowth.portal.schemas import (
    OrganizationCreate,
    OrganizationResponse,
    ProductSelection,
    ProductSelectionResponse,
    ProductSubscription,
    SingleOrganizationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

TRIAL_DAYS = 14


@router.post(
    "/organization",
    response_model=SingleOrganizationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_organization(
    data: OrganizationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Step 1: create the caller's organization.

    The organization starts on the starter tier in trial and the caller
    becomes its owner.
    """
    if current_user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already belongs to an organization",
        )

    organization = Organization(
        name=data.name,
        industry=data.industry,
        subscription_tier="starter",
        subscription_status="trial",
    )
    db.add(organization)
    await db.flush()

    current_user.organization_id = organization.id
    current_user.role = "owner"

    audit = AuditService(db, user_id=current_user.id, organization_id=organization.id)
    await audit.log(
        "organization", organization.id, "organization_created",
        new_value={"name": organization.name, "industry": organization.industry},
    )

    await db.commit()
    await db.refresh(organization)

    logger.info(f"Organization {organization.id} created by user {current_user.id}")
    return SingleOrganizationResponse(organization=OrganizationResponse.model_validate(organization))


@router.post("/products", response_model=ProductSelectionResponse)
async def select_products(
    data: ProductSelection,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Step 2: start a 14-day trial for each selected product.

    Products the organization already has a live subscription for are
    returned as they are, so repeating the call never creates a second one.
    A canceled plan gets a fresh trial.
    """
    organization_id = current_user.organization_id
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organization required. Please complete step 1 first.",
        )

    if not data.products:
        return ProductSelectionResponse(subscriptions=[])

    audit = AuditService(db, user_id=current_user.id, organization_id=organization_id)
    now = utcnow()
    subscriptions = []

    for plan in data.products:
        result = await db.execute(
            select(Subscription).where(
                Subscription.organization_id == organization_id,
                Subscription.plan == plan,
                Subscription.status != "canceled",
            )
        )
        existing = result.scalars().first()
        if existing:
            subscriptions.append(existing)
            continue

        subscription = Subscription(
            organization_id=organization_id,
            plan=plan,
            status="trialing",
            price_monthly=PLANS[plan].amount,
            trial_start_date=now,
            trial_end_date=now + timedelta(days=TRIAL_DAYS),
        )
        db.add(subscription)
        await db.flush()
        subscriptions.append(subscription)

        await audit.log(
            "subscription", subscription.id, "subscription_created",
            new_value={"plan": plan, "status": "trialing"},
        )

    await db.commit()

    return ProductSelectionResponse(
        subscriptions=[ProductSubscription.model_validate(s) for s in subscriptions]
    )
