"""API routers, one per workflow area."""
