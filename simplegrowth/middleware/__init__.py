"""Middleware for the FastAPI application."""
from simplegrowth.middleware.rate_limit import limiter, setup_rate_limiting, LIMITS

__all__ = ["limiter", "setup_rate_limiting", "LIMITS"]
