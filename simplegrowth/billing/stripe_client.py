"""
Stripe integration: plan catalogue, checkout and portal sessions, success fees.

Calls go through the async variants of the module-level ``stripe`` API with
the secret key from settings. Every helper raises ``StripeNotConfigured`` when
no key is set so callers can answer with a clear error instead of a Stripe
authentication failure.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import stripe

from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.config import settings

logger = logging.getLogger(__name__)

SUCCESS_FEE_PERCENTAGE = 0.08


class StripeNotConfigured(RuntimeError):
    """Raised when a Stripe call is attempted without STRIPE_SECRET_KEY."""


@dataclass(frozen=True)
class Plan:
    key: str
    name: str
    amount: int  # cents per month
    price_id: Optional[str]
    interval: Optional[str] = "month"
    success_fee_percentage: Optional[float] = None
    features: List[str] = field(default_factory=list)


PLANS: Dict[str, Plan] = {
    "website_management": Plan(
        key="website_management",
        name="Website Management + Automation",
        amount=7900,
        price_id=settings.STRIPE_PRICE_WEBSITE_MANAGEMENT or "price_website_management",
        features=[
            "Managed website hosting",
            "Monthly updates and maintenance",
            "Analytics dashboard",
            "Priority support",
            "Automation tools",
        ],
    ),
    "cybersecurity": Plan(
        key="cybersecurity",
        name="Cybersecurity Shield",
        amount=3900,
        price_id=settings.STRIPE_PRICE_CYBERSECURITY or "price_cybersecurity",
        features=[
            "Weekly security scans",
            "SSL monitoring",
            "Vulnerability alerts",
            "Security headers check",
            "Remediation guidance",
        ],
    ),
    "chauffeur": Plan(
        key="chauffeur",
        name="Business Chauffeur",
        amount=19900,
        price_id=settings.STRIPE_PRICE_CHAUFFEUR or "price_chauffeur",
        features=[
            "POS integration",
            "Accounting sync",
            "Review monitoring",
            "AI business insights",
            "Competitor analysis",
        ],
    ),
    # Success fee only, billed per recovered invoice
    "cashflow_ai": Plan(
        key="cashflow_ai",
        name="Cash Flow AI",
        amount=0,
        price_id=None,
        interval=None,
        success_fee_percentage=SUCCESS_FEE_PERCENTAGE,
        features=[
            "Invoice recovery automation",
            "Payment predictions",
            "Cash flow forecasting",
            "QuickBooks/Xero sync",
            "AI recommendations",
        ],
    ),
}


def is_configured() -> bool:
    return bool(settings.STRIPE_SECRET_KEY)


def _client():
    if not settings.STRIPE_SECRET_KEY:
        raise StripeNotConfigured("Stripe not configured")
    stripe.api_key = settings.STRIPE_SECRET_KEY
    return stripe


async def create_checkout_session(
    organization_id: str,
    plan: str,
    success_url: str,
    cancel_url: str,
    customer_id: Optional[str] = None,
):
    """Start a subscription checkout. Organization and plan travel in the metadata."""
    s = _client()
    plan_config = PLANS[plan]
    if not plan_config.price_id:
        raise ValueError(f"Plan {plan} has no price ID")

    metadata = {"organization_id": organization_id, "plan": plan}
    return await s.checkout.Session.create_async(
        customer=customer_id or None,
        mode="subscription",
        payment_method_types=["card"],
        line_items=[{"price": plan_config.price_id, "quantity": 1}],
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
        subscription_data={"metadata": metadata},
    )


async def create_portal_session(customer_id: str, return_url: str):
    s = _client()
    return await s.billing_portal.Session.create_async(customer=customer_id, return_url=return_url)


async def cancel_subscription(subscription_id: str):
    s = _client()
    return await s.Subscription.cancel_async(subscription_id)


def calculate_success_fee(recovered_amount: int) -> int:
    """Cash Flow AI fee in cents for a recovered amount in cents."""
    return round_half_up(recovered_amount * SUCCESS_FEE_PERCENTAGE)


async def create_success_fee_invoice(customer_id: str, amount: int, description: str):
    """
    Bill a Cash Flow AI success fee.

    Adds a one-off invoice item for ``amount`` cents and opens an invoice
    that Stripe finalizes and collects automatically.
    """
    s = _client()
    await s.InvoiceItem.create_async(
        customer=customer_id,
        amount=amount,
        currency="usd",
        description=description,
    )
    invoice = await s.Invoice.create_async(customer=customer_id, auto_advance=True)
    logger.info(f"Created success fee invoice {invoice['id']} for {customer_id}: {amount} cents")
    return invoice
