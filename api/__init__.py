"""GrantPilot HTTP API."""
