"""Chat assistant grounded in the organization's own data."""
