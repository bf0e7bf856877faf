"""Third-party integrations overview."""
