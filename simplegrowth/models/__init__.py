"""
Consolidated models package.

IMPORTANT: Explicit imports only - no wildcards to prevent circular imports.
Use string-based forward references in relationships: relationship("Client", ...)
"""

# Base utilities
from simplegrowth.models.base import generate_id, utcnow, as_utc

# Tenant and accounts
from simplegrowth.models.organization import Organization, User, VerificationToken

# Accounts receivable
from simplegrowth.models.cashflow import Client, Invoice, Payment, AIRecommendation

# Client portal
from simplegrowth.models.portal import WebsiteProject, ProjectNote, ChangeRequest, Lead

# Billing
from simplegrowth.models.billing import Subscription

# Business Chauffeur
from simplegrowth.models.operations import (
    BusinessInsight,
    BusinessMetric,
    Integration,
    OAuthState,
    Employee,
    PayrollSnapshot,
    PayrollEntry,
)

# Assistant
from simplegrowth.models.chat import ChatMessage

# Reference data
from simplegrowth.models.benchmark import IndustryBenchmark

# Audit
from simplegrowth.audit.models import AuditLog


__all__ = [
    # Utilities
    "generate_id",
    "utcnow",
    "as_utc",
    # Tenant
    "Organization",
    "User",
    "VerificationToken",
    # Accounts receivable
    "Client",
    "Invoice",
    "Payment",
    "AIRecommendation",
    # Portal
    "WebsiteProject",
    "ProjectNote",
    "ChangeRequest",
    "Lead",
    # Billing
    "Subscription",
    # Business Chauffeur
    "BusinessInsight",
    "BusinessMetric",
    "Integration",
    "OAuthState",
    "Employee",
    "PayrollSnapshot",
    "PayrollEntry",
    # Assistant
    "ChatMessage",
    # Reference data
    "IndustryBenchmark",
    # Audit
    "AuditLog",
]
