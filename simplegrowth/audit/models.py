"""
Audit Log model for tracking account, tenant and billing changes.

Rows are written inside the caller's transaction so an audit entry only
exists when the change it describes was committed.
"""
from sqlalchemy import Column, String, DateTime, Text, Index, JSON
from sqlalchemy.sql import func

from simplegrowth.database import Base
from simplegrowth.models.base import generate_id


class AuditLog(Base):
    """
    Audit Log - Tracks user-visible changes in the system.

    Used for:
    - Account lifecycle (registration, verification, password resets)
    - Tenant setup (organization and subscription creation)
    - Portal activity and admin triage of projects, change requests and leads
    - Billing (Stripe subscription changes, success fees)
    - Collections, insights, integrations and payroll
    """

    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=lambda: generate_id("audit"))

    # What changed?
    entity_type = Column(String, nullable=False, index=True)
    # Options: "user", "organization", "subscription", "project", "change_request", "lead",
    # "invoice", "insight", "integration", "payroll"

    entity_id = Column(String, nullable=False, index=True)

    # What kind of change?
    action = Column(String, nullable=False, index=True)
    # Options:
    # - "user_registered"
    # - "email_verified"
    # - "password_reset_requested" / "password_reset_completed"
    # - "organization_created"
    # - "subscription_created" / "subscription_activated"
    # - "project_created" / "change_request_created" / "lead_created"
    # - "reminder_sent" / "reminder_failed" / "success_fee_billed"
    # - "integration_connected" / "integration_synced"
    # - "payroll_recorded" / "receivables_analyzed"
    # - "update" (one row per changed field)

    field_name = Column(String, nullable=True)

    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    # Who made the change, and for which tenant?
    user_id = Column(String, nullable=True, index=True)
    organization_id = Column(String, nullable=True, index=True)

    # What triggered the change?
    source = Column(String, nullable=False, default="api")
    # Options: "api", "stripe_webhook", "gusto_sync", "system", "admin"

    extra_data = Column("extra_data", JSON, nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
        Index("ix_audit_log_org_time", "organization_id", "created_at"),
        Index("ix_audit_log_user_time", "user_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<AuditLog {self.id}: "
            f"{self.action} on {self.entity_type}/{self.entity_id} "
            f"at {self.created_at}>"
        )
