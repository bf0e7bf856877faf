"""Email/password authentication with JWT bearer tokens."""
