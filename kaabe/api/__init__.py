"""API routers and request dependencies."""
