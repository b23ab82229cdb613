"""API routers for the Sahakum membership service."""

from app.routers import approval_settings, membership_requests, whoami  # noqa: F401
