"""
Identity provider — credential verification and the user directory.

``HttpIdentityProvider`` talks to a GoTrue / PostgREST style backend:

    GET  {url}/auth/v1/user                        verify caller credential
    GET  {url}/auth/v1/admin/users?page=&per_page= page through all users
    GET  {url}/rest/v1/profiles?id=eq.{id}         display profile

Directory and profile calls use the service-role key and never leave the
server. Transport errors and unexpected statuses raise CompassIntegrationError.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from compass.board.models import Profile
from compass.engine.errors import CompassIntegrationError

logger = logging.getLogger("compass.lookup.identity")


class Caller(BaseModel):
    """The authenticated user behind a request."""
    id: str
    email: Optional[str] = None


class DirectoryUser(BaseModel):
    id: str
    email: Optional[str] = None


class IdentityProvider(ABC):
    @abstractmethod
    async def verify_token(self, credential: str) -> Optional[Caller]:
        """Resolve an Authorization header value to a caller, or None if invalid."""

    @abstractmethod
    async def list_users(self, page: int, per_page: int) -> List[DirectoryUser]:
        """One page of the user directory. Pages are 1-based."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        """Display profile for a user, or None when none is on record."""

    async def aclose(self) -> None:
        return None


class HttpIdentityProvider(IdentityProvider):
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise CompassIntegrationError("Identity provider URL is not configured")
        self._anon_key = anon_key or service_role_key
        self._service_role_key = service_role_key
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> "HttpIdentityProvider":
        ident = settings.identity
        return cls(
            base_url=ident.url,
            anon_key=ident.anon_key,
            service_role_key=ident.service_role_key,
            timeout=ident.timeout,
        )

    def _service_headers(self) -> Dict[str, str]:
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    async def _get(self, path: str, headers: Dict[str, str], params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            return await self._client.get(path, headers=headers, params=params)
        except httpx.HTTPError as e:
            raise CompassIntegrationError(
                f"Identity provider request failed: {e}", path=path
            ) from e

    async def verify_token(self, credential: str) -> Optional[Caller]:
        resp = await self._get(
            "/auth/v1/user",
            headers={"apikey": self._anon_key, "Authorization": credential},
        )
        if resp.status_code in (401, 403):
            return None
        if resp.status_code != 200:
            raise CompassIntegrationError(
                "Credential verification failed",
                upstream_status=resp.status_code,
                response_body=resp.text[:500],
            )
        data = resp.json()
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return Caller(id=str(data["id"]), email=data.get("email"))

    async def list_users(self, page: int, per_page: int) -> List[DirectoryUser]:
        resp = await self._get(
            "/auth/v1/admin/users",
            headers=self._service_headers(),
            params={"page": page, "per_page": per_page},
        )
        if resp.status_code != 200:
            raise CompassIntegrationError(
                "Directory listing failed",
                upstream_status=resp.status_code,
                response_body=resp.text[:500],
            )
        data = resp.json()
        raw_users = data.get("users", []) if isinstance(data, dict) else data
        return [
            DirectoryUser(id=str(u["id"]), email=u.get("email"))
            for u in raw_users or []
            if isinstance(u, dict) and u.get("id")
        ]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        resp = await self._get(
            "/rest/v1/profiles",
            headers=self._service_headers(),
            params={"id": f"eq.{user_id}", "select": "id,name,avatar_url"},
        )
        if resp.status_code != 200:
            logger.warning(f"Profile fetch for {user_id} returned {resp.status_code}")
            return None
        rows = resp.json()
        if not rows:
            return None
        row = rows[0]
        return Profile(id=str(row["id"]), name=row.get("name") or "", avatar_url=row.get("avatar_url"))

    async def aclose(self) -> None:
        await self._client.aclose()


class InMemoryIdentityProvider(IdentityProvider):
    """Static tokens, users and profiles. Used by tests and local runs."""

    def __init__(
        self,
        tokens: Optional[Dict[str, Caller]] = None,
        users: Optional[List[DirectoryUser]] = None,
        profiles: Optional[List[Profile]] = None,
    ):
        self.tokens: Dict[str, Caller] = dict(tokens or {})
        self.users: List[DirectoryUser] = list(users or [])
        self.profiles: Dict[str, Profile] = {p.id: p for p in (profiles or [])}
        self.pages_requested: List[int] = []

    async def verify_token(self, credential: str) -> Optional[Caller]:
        token = credential.removeprefix("Bearer ").strip()
        return self.tokens.get(token)

    async def list_users(self, page: int, per_page: int) -> List[DirectoryUser]:
        self.pages_requested.append(page)
        start = (page - 1) * per_page
        return self.users[start:start + per_page]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.profiles.get(user_id)
