"""Accounts-receivable models: clients, invoices, payments and stored recommendations.

All money columns are integer cents.
"""
from sqlalchemy import Column, String, DateTime, Integer, Float, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from simplegrowth.database import Base
from simplegrowth.models.base import generate_id


class Client(Base):
    """A customer of the tenant who receives invoices."""

    __tablename__ = "clients"

    id = Column(String, primary_key=True, default=lambda: generate_id("client"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    industry = Column(String, nullable=True)

    # Payment behaviour
    payment_score = Column(Integer, nullable=True)  # 0-100
    avg_days_to_payment = Column(Float, nullable=True)
    risk_level = Column(String, nullable=True)  # low, medium, high, critical

    total_invoiced = Column(Integer, nullable=False, default=0)
    total_paid = Column(Integer, nullable=False, default=0)
    total_outstanding = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="clients")
    invoices = relationship("Invoice", back_populates="client")


class Invoice(Base):
    """Invoice issued to a client.

    Status lifecycle: sent -> viewed -> partial -> paid / overdue / written_off.
    """

    __tablename__ = "invoices"

    id = Column(String, primary_key=True, default=lambda: generate_id("inv"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)

    invoice_number = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    amount_paid = Column(Integer, nullable=False, default=0)
    issue_date = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String, nullable=False, default="sent")
    recovery_likelihood = Column(Float, nullable=True)  # 0-1
    predicted_payment_date = Column(DateTime(timezone=True), nullable=True)
    risk_level = Column(String, nullable=True)
    urgency_score = Column(Integer, nullable=True)  # 0-100
    analyzed_at = Column(DateTime(timezone=True), nullable=True)
    source = Column(String, nullable=False, default="manual")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="invoices")
    client = relationship("Client", back_populates="invoices")
    payments = relationship("Payment", back_populates="invoice", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_invoices_org_status", "organization_id", "status"),
    )

    @property
    def outstanding(self) -> int:
        return (self.amount or 0) - (self.amount_paid or 0)


class Payment(Base):
    """A payment received against an invoice."""

    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=lambda: generate_id("pay"))
    invoice_id = Column(String, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Integer, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    method = Column(String, nullable=True)  # ach, check, credit_card, wire
    reference = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    invoice = relationship("Invoice", back_populates="payments")


class AIRecommendation(Base):
    """A recommendation persisted for a client or invoice."""

    __tablename__ = "ai_recommendations"

    id = Column(String, primary_key=True, default=lambda: generate_id("rec"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    invoice_id = Column(String, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)

    type = Column(String, nullable=False)
    priority = Column(String, nullable=False, default="medium")
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    reasoning = Column(Text, nullable=True)
    confidence = Column(Float, nullable=True)

    # Options: pending, accepted, dismissed, completed
    status = Column(String, nullable=False, default="pending")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
