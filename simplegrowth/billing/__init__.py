"""Billing: Stripe plans, checkout and webhook sync."""
