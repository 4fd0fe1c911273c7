"""
Compass Lookup Service — resolve an email address to a registered user.

Pipeline (per-request):
    1. OPTIONS preflight      → 200, CORS headers only
    2. Authenticate           → Authorization header verified by identity provider
    3. Rate limit             → fixed window per caller id
    4. Validate email         → present, string, local@domain.tld
    5. Directory search       → paged scan, 50 per page, at most 20 pages
    6. Profile                → {id, name}; name falls back to the email

Every failure is turned into ``{"error": <message>}``. With
``lookup.uniform_error_status`` set the HTTP status is always 200 and callers
branch on the ``error`` field; otherwise each kind keeps its own status code.

The directory scan is linear and stops at 1000 users. Users beyond that
bound are reported as not found.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel

from compass.board.validation import EMAIL_PATTERN, normalize_email
from compass.engine.config import Settings, get_settings
from compass.engine.errors import (
    CompassError,
    CompassNotFoundError,
    CompassSessionError,
    CompassValidationError,
)
from compass.engine.logging import log, log_lookup_request, log_security_event
from compass.engine.rate_limit import FixedWindowRateLimiter
from compass.lookup.cors import cors_headers
from compass.lookup.identity import Caller, DirectoryUser, IdentityProvider

logger = logging.getLogger("compass.lookup.service")

UNAUTHORIZED = "Unauthorized"
EMAIL_REQUIRED = "Email is required"
INVALID_EMAIL = "Invalid email format"
USER_NOT_FOUND = "User not found"


# ---------------------------------------------------------------------------
# Request / Response Models
# ---------------------------------------------------------------------------

class LookupRequest(BaseModel):
    """Normalized inbound request. Header names are lower-case."""

    method: str = "POST"
    headers: Dict[str, str] = {}
    body: Any = None


class LookupResponse(BaseModel):
    status_code: int = 200
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = {}

    @property
    def is_error(self) -> bool:
        return bool(self.body) and "error" in self.body


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class LookupService:
    def __init__(
        self,
        provider: IdentityProvider,
        rate_limiter: FixedWindowRateLimiter,
        settings: Optional[Settings] = None,
    ):
        self._provider = provider
        self._rate_limiter = rate_limiter
        self._settings = settings or get_settings()

    @property
    def provider(self) -> IdentityProvider:
        return self._provider

    async def execute(self, request: LookupRequest) -> LookupResponse:
        """Run the full pipeline. Never raises."""
        origin = request.headers.get("origin", "")
        cors = cors_headers(origin, self._settings.cors)

        if request.method.upper() == "OPTIONS":
            return LookupResponse(status_code=200, body=None, headers=cors)

        start_time = time.monotonic()
        caller_id: Optional[str] = None

        try:
            caller = await self._authenticate(request)
            caller_id = caller.id

            self._rate_limiter.enforce(caller.id)

            email = self.validate_email(request.body)
            user = await self.find_user(email)

            profile = await self._provider.get_profile(user.id)
            name = profile.name if profile and profile.name else email

            self._log(caller_id, 200, start_time, origin, "found")
            return LookupResponse(
                status_code=200,
                body={"id": user.id, "name": name},
                headers=cors,
            )

        except CompassError as e:
            status_code = e.status_code
            message = e.message
            outcome = e.error_type
            if status_code >= 500:
                logger.error(f"Lookup failed for caller {caller_id}: {e!r}")

        except Exception as e:
            status_code = 500
            message = str(e) or "Internal server error"
            outcome = "internal"
            logger.exception(f"Unhandled error in lookup for caller {caller_id}: {e}")

        self._log(caller_id, status_code, start_time, origin, outcome, error=message)
        if self._settings.lookup.uniform_error_status:
            status_code = 200
        return LookupResponse(status_code=status_code, body={"error": message}, headers=cors)

    # -----------------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------------

    async def _authenticate(self, request: LookupRequest) -> Caller:
        credential = request.headers.get("authorization", "").strip()
        if not credential:
            raise CompassSessionError(UNAUTHORIZED)

        caller = await self._provider.verify_token(credential)
        if caller is None:
            log(log_security_event(
                event="invalid_credential",
                object_type="lookup",
                permission_needed="authenticated",
                actor_role=None,
            ))
            raise CompassSessionError(UNAUTHORIZED)
        return caller

    @staticmethod
    def validate_email(body: Any) -> str:
        """Pull ``email`` out of the request body and return it normalized."""
        email = body.get("email") if isinstance(body, dict) else None
        if not email or not isinstance(email, str):
            raise CompassValidationError(EMAIL_REQUIRED, field="email")

        normalized = normalize_email(email)
        if not EMAIL_PATTERN.match(normalized):
            raise CompassValidationError(INVALID_EMAIL, field="email")
        return normalized

    async def find_user(self, email: str) -> DirectoryUser:
        """
        Page through the directory for an exact (case-insensitive) match.
        Stops on a match, on a short page, or after ``max_pages`` pages.
        """
        page_size = self._settings.lookup.page_size
        max_pages = self._settings.lookup.max_pages
        target = normalize_email(email)

        for page in range(1, max_pages + 1):
            users = await self._provider.list_users(page, page_size)
            for user in users:
                if user.email and user.email.lower() == target:
                    return user
            if len(users) < page_size:
                break
        else:
            logger.warning(f"Directory scan hit the {max_pages}-page bound without a match")

        raise CompassNotFoundError(USER_NOT_FOUND)

    def _log(
        self,
        caller_id: Optional[str],
        status_code: int,
        start_time: float,
        origin: str,
        outcome: str,
        error: Optional[str] = None,
    ) -> None:
        duration_ms = (time.monotonic() - start_time) * 1000
        log(log_lookup_request(
            caller_id=caller_id,
            status_code=status_code,
            duration_ms=duration_ms,
            outcome=outcome,
            origin=origin or None,
            error=error,
        ))
