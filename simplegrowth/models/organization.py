"""Tenant and account models."""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from simplegrowth.database import Base
from simplegrowth.models.base import generate_id


class Organization(Base):
    """Organization - the unit of data isolation. Every tenant row hangs off one."""

    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=lambda: generate_id("org"))
    name = Column(String, nullable=False)
    industry = Column(String, nullable=True)
    website = Column(String, nullable=True)
    timezone = Column(String, nullable=False, default="America/New_York")
    currency = Column(String, nullable=False, default="USD")

    # Options: starter, pro, enterprise
    subscription_tier = Column(String, nullable=False, default="starter")
    # Options: trial, active, past_due, canceled
    subscription_status = Column(String, nullable=False, default="trial")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    users = relationship("User", back_populates="organization")
    clients = relationship("Client", back_populates="organization", cascade="all, delete-orphan")
    invoices = relationship("Invoice", back_populates="organization", cascade="all, delete-orphan")
    subscriptions = relationship("Subscription", back_populates="organization", cascade="all, delete-orphan")
    projects = relationship("WebsiteProject", back_populates="organization", cascade="all, delete-orphan")


class User(Base):
    """User model - an individual signing in to the portal or dashboard."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: generate_id("user"))
    email = Column(String, unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=True)
    name = Column(String, nullable=True)

    # Options: user, owner, admin
    role = Column(String, nullable=False, default="user")
    auth_provider = Column(String, nullable=False, default="email")
    email_verified = Column(DateTime(timezone=True), nullable=True)

    organization_id = Column(String, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="users")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class VerificationToken(Base):
    """One-time tokens for email verification and password resets.

    The identifier is either the bare email (verification) or
    ``password_reset:{email}``.
    """

    __tablename__ = "verification_tokens"

    token = Column(String, primary_key=True)
    identifier = Column(String, nullable=False, index=True)
    expires = Column(DateTime(timezone=True), nullable=False)
