"""Health and metrics HTTP surface."""
