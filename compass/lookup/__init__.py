"""Compass Lookup — rate-limited email → user resolution for invites."""

from compass.lookup.service import LookupRequest, LookupResponse, LookupService  # noqa: F401

__all__ = ["LookupRequest", "LookupResponse", "LookupService"]
