"""Outbound email: providers, templates and the service used by routes."""
from simplegrowth.notifications.email_provider import EmailMessage, SendResult, get_email_provider
from simplegrowth.notifications.service import EmailService, get_email_service

__all__ = ["EmailMessage", "SendResult", "get_email_provider", "EmailService", "get_email_service"]
