"""Core utilities: exception hierarchy, retry helpers, correlation context."""
