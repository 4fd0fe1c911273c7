"""
Lookup client — calls the email lookup endpoint for the invite workflow.

The endpoint may flatten every failure to HTTP 200, so the client decides
success or failure from the presence of an ``error`` field in the body and
never from the status code.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Type

import httpx
from pydantic import BaseModel

from compass.engine.errors import (
    CompassError,
    CompassIntegrationError,
    CompassNotFoundError,
    CompassRateLimitError,
    CompassSessionError,
    CompassValidationError,
)
from compass.engine.rate_limit import RATE_LIMIT_MESSAGE
from compass.lookup.service import EMAIL_REQUIRED, INVALID_EMAIL, UNAUTHORIZED, USER_NOT_FOUND

logger = logging.getLogger("compass.lookup.client")

_ERROR_TYPES: Dict[str, Type[CompassError]] = {
    UNAUTHORIZED: CompassSessionError,
    RATE_LIMIT_MESSAGE: CompassRateLimitError,
    EMAIL_REQUIRED: CompassValidationError,
    INVALID_EMAIL: CompassValidationError,
    USER_NOT_FOUND: CompassNotFoundError,
}


class LookupResult(BaseModel):
    id: str
    name: str


class LookupClient:
    def __init__(
        self,
        base_url: str,
        path: str = "/find-user-by-email",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._path = path
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def find_user_by_email(self, email: str, credential: Optional[str] = None) -> LookupResult:
        headers = {}
        if credential:
            headers["Authorization"] = (
                credential if credential.lower().startswith("bearer ") else f"Bearer {credential}"
            )
        try:
            resp = await self._client.post(self._path, json={"email": email}, headers=headers)
        except httpx.HTTPError as e:
            raise CompassIntegrationError(f"Lookup request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            raise CompassIntegrationError(
                "Lookup returned a non-JSON response",
                upstream_status=resp.status_code,
                response_body=resp.text[:500],
            ) from None

        if not isinstance(data, dict):
            raise CompassIntegrationError("Lookup returned an unexpected body", upstream_status=resp.status_code)

        if "error" in data:
            message = str(data["error"])
            error_cls = _ERROR_TYPES.get(message, CompassIntegrationError)
            raise error_cls(message, upstream_status=resp.status_code)
        if not data.get("id"):
            raise CompassIntegrationError("Lookup response has no user id", upstream_status=resp.status_code)

        return LookupResult(id=str(data["id"]), name=str(data.get("name") or email))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "LookupClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
