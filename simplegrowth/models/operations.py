"""Business Chauffeur models: insights, daily metrics, integrations and payroll."""
from sqlalchemy import Column, String, DateTime, Integer, Float, Boolean, ForeignKey, Text, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from simplegrowth.database import Base
from simplegrowth.models.base import generate_id


class BusinessInsight(Base):
    """An observation surfaced to the business owner."""

    __tablename__ = "business_insights"

    id = Column(String, primary_key=True, default=lambda: generate_id("insight"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    category = Column(String, nullable=False)  # revenue, operations, staffing, customer, cash_flow
    type = Column(String, nullable=False)  # observation, opportunity, risk
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    confidence = Column(Float, nullable=True)
    data = Column(JSON, nullable=True)

    action_required = Column(Boolean, nullable=False, default=False)
    action_taken = Column(Boolean, nullable=False, default=False)
    action_details = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class BusinessMetric(Base):
    """Daily roll-up of POS, review and accounting numbers. Revenue is in cents."""

    __tablename__ = "business_metrics"

    id = Column(String, primary_key=True, default=lambda: generate_id("metric"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    metric_date = Column(DateTime(timezone=True), nullable=False)

    revenue = Column(Integer, nullable=True)
    transactions = Column(Integer, nullable=True)
    review_count = Column(Integer, nullable=True)
    avg_rating = Column(Float, nullable=True)
    source = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_business_metrics_org_date", "organization_id", "metric_date"),
    )


class Integration(Base):
    """A third-party system connected to an organization (POS, accounting, payroll, reviews)."""

    __tablename__ = "integrations"

    id = Column(String, primary_key=True, default=lambda: generate_id("integ"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    provider = Column(String, nullable=False)  # gusto, square, quickbooks, ...
    category = Column(String, nullable=True)  # pos, accounting, payroll, reviews
    # Options: connected, disconnected, error, pending
    status = Column(String, nullable=False, default="pending")
    external_id = Column(String, nullable=True)

    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_sync_status = Column(String, nullable=True)
    sync_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class OAuthState(Base):
    """One-time state token for an integration OAuth flow. Valid until expires_at."""

    __tablename__ = "oauth_states"

    id = Column(String, primary_key=True, default=lambda: generate_id("oauth"))
    state = Column(String, nullable=False, unique=True, index=True)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String, nullable=False, default="gusto")

    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Employee(Base):
    """A staff member, entered manually or synced from payroll."""

    __tablename__ = "employees"

    id = Column(String, primary_key=True, default=lambda: generate_id("emp"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(String, nullable=False, default="Staff")
    department = Column(String, nullable=False, default="General")
    hire_date = Column(DateTime(timezone=True), nullable=True)
    hourly_rate = Column(Float, nullable=True)  # dollars
    performance_score = Column(Integer, nullable=True)
    # Options: active, terminated
    status = Column(String, nullable=False, default="active")
    external_id = Column(String, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PayrollSnapshot(Base):
    """Totals for one pay period. All money columns are cents."""

    __tablename__ = "payroll_snapshots"

    id = Column(String, primary_key=True, default=lambda: generate_id("payroll"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    period_start = Column(DateTime(timezone=True), nullable=False)
    period_end = Column(DateTime(timezone=True), nullable=False)
    pay_date = Column(DateTime(timezone=True), nullable=False)

    total_gross_pay = Column(Integer, nullable=False, default=0)
    total_net_pay = Column(Integer, nullable=False, default=0)
    total_tax_withholdings = Column(Integer, nullable=False, default=0)
    total_benefits_cost = Column(Integer, nullable=False, default=0)
    total_overtime_cost = Column(Integer, nullable=False, default=0)
    employee_count = Column(Integer, nullable=False, default=0)
    department_breakdown = Column(JSON, nullable=True)

    source = Column(String, nullable=False, default="manual")  # manual, gusto
    external_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    entries = relationship("PayrollEntry", back_populates="snapshot", cascade="all, delete-orphan")


class PayrollEntry(Base):
    """One employee's line on a payroll snapshot. Money in cents."""

    __tablename__ = "payroll_entries"

    id = Column(String, primary_key=True, default=lambda: generate_id("pentry"))
    snapshot_id = Column(String, ForeignKey("payroll_snapshots.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(String, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)

    gross_pay = Column(Integer, nullable=False)
    net_pay = Column(Integer, nullable=False)
    tax_withholdings = Column(Integer, nullable=False, default=0)
    regular_hours = Column(Float, nullable=False, default=80)
    overtime_hours = Column(Float, nullable=False, default=0)
    department = Column(String, nullable=True)

    snapshot = relationship("PayrollSnapshot", back_populates="entries")
