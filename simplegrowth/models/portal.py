"""Client portal models: website projects, notes, change requests and leads."""
from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from simplegrowth.database import Base
from simplegrowth.models.base import generate_id


class WebsiteProject(Base):
    """A website build/redesign/migration project submitted through the portal."""

    __tablename__ = "website_projects"

    id = Column(String, primary_key=True, default=lambda: generate_id("proj"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    project_name = Column(String, nullable=False)
    project_type = Column(String, nullable=False)  # new_build, redesign, migration
    existing_url = Column(String, nullable=True)
    target_audience = Column(Text, nullable=True)
    desired_features = Column(JSON, nullable=True)
    design_preferences = Column(JSON, nullable=True)

    # Options: submitted, in_review, in_progress, review, completed, on_hold
    status = Column(String, nullable=False, default="submitted")
    priority = Column(Integer, nullable=False, default=0)

    deployed_url = Column(String, nullable=True)
    repository_url = Column(String, nullable=True)
    deployment_platform = Column(String, nullable=True)
    estimated_completion = Column(DateTime(timezone=True), nullable=True)
    actual_completion = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="projects")
    notes = relationship("ProjectNote", back_populates="project", cascade="all, delete-orphan")
    change_requests = relationship("ChangeRequest", back_populates="project", cascade="all, delete-orphan")


class ProjectNote(Base):
    """Note attached to a project. Internal notes are visible to admins only."""

    __tablename__ = "project_notes"

    id = Column(String, primary_key=True, default=lambda: generate_id("note"))
    project_id = Column(String, ForeignKey("website_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    project = relationship("WebsiteProject", back_populates="notes")


class ChangeRequest(Base):
    """A client's request to change a delivered or in-flight project."""

    __tablename__ = "change_requests"

    id = Column(String, primary_key=True, default=lambda: generate_id("cr"))
    project_id = Column(String, ForeignKey("website_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    requester_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String, nullable=False)  # feature, bug, content, design
    priority = Column(String, nullable=False, default="normal")  # low, normal, high, urgent
    # Options: pending, approved, in_progress, completed, rejected
    status = Column(String, nullable=False, default="pending")
    resolution = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    project = relationship("WebsiteProject", back_populates="change_requests")


class Lead(Base):
    """Prospect captured by the public questionnaire or the URL analyzer."""

    __tablename__ = "leads"

    id = Column(String, primary_key=True, default=lambda: generate_id("lead"))
    business_name = Column(String, nullable=False)
    contact_name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)
    has_website = Column(Boolean, nullable=False, default=False)
    website_url = Column(String, nullable=True)
    industry = Column(String, nullable=True)
    challenges = Column(Text, nullable=True)

    # Options: new, contacted, qualified, converted, lost
    status = Column(String, nullable=False, default="new")
    notes = Column(Text, nullable=True)
    analysis_score = Column(Integer, nullable=True)
    analysis_data = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
