"""Subscription model."""
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from simplegrowth.database import Base
from simplegrowth.models.base import generate_id


class Subscription(Base):
    """A product subscription held by an organization, mirrored from Stripe."""

    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, default=lambda: generate_id("sub"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    # Options: website_management, cashflow_ai, cybersecurity, chauffeur
    plan = Column(String, nullable=False)
    # Options: trialing, active, past_due, canceled, incomplete
    status = Column(String, nullable=False, default="trialing")
    price_monthly = Column(Integer, nullable=False, default=0)  # cents

    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, unique=True)
    stripe_price_id = Column(String, nullable=True)

    trial_start_date = Column(DateTime(timezone=True), nullable=True)
    trial_end_date = Column(DateTime(timezone=True), nullable=True)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="subscriptions")
