"""Pydantic schemas for billing."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class CheckoutRequest(BaseModel):
    plan: Literal["website_management", "cybersecurity", "chauffeur"]


class SessionUrlResponse(BaseModel):
    url: str


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    plan: str
    status: str
    price_monthly: int
    current_period_end: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None


class SubscriptionListResponse(BaseModel):
    subscriptions: List[SubscriptionResponse]


class WebhookResponse(BaseModel):
    received: bool = True


class SuccessFeeRequest(BaseModel):
    invoice_id: str


class SuccessFeeResponse(BaseModel):
    invoice_id: str
    recovered_amount: int
    fee: int
    stripe_invoice_id: str
