"""Audit trail system for tracking data changes."""
from simplegrowth.audit.models import AuditLog
from simplegrowth.audit.services import AuditService

__all__ = ["AuditLog", "AuditService"]
