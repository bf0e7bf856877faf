"""Insight generation: disclaimers, cross-system correlations and the unified health assessment."""
