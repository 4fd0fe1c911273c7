"""Unit tests for compass.lookup.service — the email lookup pipeline."""

from unittest.mock import AsyncMock

import pytest

from compass.engine.config import LookupConfig, Settings
from compass.engine.errors import CompassIntegrationError
from compass.engine.rate_limit import RATE_LIMIT_MESSAGE
from compass.lookup.identity import Caller, DirectoryUser, InMemoryIdentityProvider
from compass.lookup.service import (
    EMAIL_REQUIRED,
    INVALID_EMAIL,
    UNAUTHORIZED,
    USER_NOT_FOUND,
    LookupRequest,
    LookupService,
)


def _post(email=None, token="tok-owner", body=..., origin=None):
    headers = {}
    if token:
        headers["authorization"] = f"Bearer {token}"
    if origin:
        headers["origin"] = origin
    if body is ...:
        body = {"email": email}
    return LookupRequest(method="POST", headers=headers, body=body)


class TestPreflight:
    @pytest.mark.asyncio
    async def test_options_is_bare_ok(self, lookup_service, identity):
        resp = await lookup_service.execute(LookupRequest(method="OPTIONS", headers={}))
        assert resp.status_code == 200
        assert resp.body is None
        assert set(resp.headers) == {"Access-Control-Allow-Origin", "Access-Control-Allow-Headers"}
        assert identity.pages_requested == []


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_header(self, lookup_service):
        resp = await lookup_service.execute(_post("a@b.co", token=None))
        assert resp.status_code == 401
        assert resp.body == {"error": UNAUTHORIZED}

    @pytest.mark.asyncio
    async def test_unknown_token(self, lookup_service):
        resp = await lookup_service.execute(_post("a@b.co", token="forged"))
        assert resp.status_code == 401
        assert resp.body == {"error": UNAUTHORIZED}

    @pytest.mark.asyncio
    async def test_unauthenticated_requests_do_not_consume_quota(self, lookup_service, limiter):
        for _ in range(20):
            await lookup_service.execute(_post("a@b.co", token="forged"))
        assert limiter.check("u-owner").count == 1


class TestQuota:
    @pytest.mark.asyncio
    async def test_eleventh_request_rejected(self, lookup_service):
        for _ in range(10):
            resp = await lookup_service.execute(_post("alice@example.com"))
            assert resp.status_code == 200
        resp = await lookup_service.execute(_post("alice@example.com"))
        assert resp.status_code == 429
        assert resp.body == {"error": RATE_LIMIT_MESSAGE}

    @pytest.mark.asyncio
    async def test_invalid_input_counts_against_quota(self, lookup_service):
        for _ in range(10):
            await lookup_service.execute(_post("not-an-email"))
        resp = await lookup_service.execute(_post("alice@example.com"))
        assert resp.status_code == 429

    @pytest.mark.asyncio
    async def test_quota_is_per_caller(self, lookup_service):
        for _ in range(11):
            await lookup_service.execute(_post("alice@example.com"))
        resp = await lookup_service.execute(_post("alice@example.com", token="tok-other"))
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_window_rollover(self, lookup_service, clock):
        for _ in range(11):
            await lookup_service.execute(_post("alice@example.com"))
        clock.advance(60_001)
        resp = await lookup_service.execute(_post("alice@example.com"))
        assert resp.status_code == 200


class TestEmailValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [None, {}, {"email": ""}, {"email": 42}, {"email": None}, ["a@b.co"]])
    async def test_email_required(self, lookup_service, body):
        resp = await lookup_service.execute(_post(body=body))
        assert resp.status_code == 400
        assert resp.body == {"error": EMAIL_REQUIRED}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "a b@c.de", "   "])
    async def test_invalid_format(self, lookup_service, email):
        resp = await lookup_service.execute(_post(email))
        assert resp.status_code == 400
        assert resp.body == {"error": INVALID_EMAIL}

    def test_validate_email_normalizes(self):
        assert LookupService.validate_email({"email": "  Alice@Example.COM "}) == "alice@example.com"


class TestResolution:
    @pytest.mark.asyncio
    async def test_found_case_insensitive_with_profile(self, lookup_service, identity):
        resp = await lookup_service.execute(_post("  ALICE@example.COM "))
        assert resp.status_code == 200
        assert resp.body == {"id": "u-alice", "name": "Alice Liddell"}
        assert identity.pages_requested == [1]

    @pytest.mark.asyncio
    async def test_name_falls_back_to_email(self, lookup_service, identity):
        resp = await lookup_service.execute(_post("Late@Example.com"))
        assert resp.body == {"id": "u-late", "name": "late@example.com"}
        assert identity.pages_requested == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_not_found_stops_on_short_page(self, lookup_service, identity):
        resp = await lookup_service.execute(_post("nobody@example.com"))
        assert resp.status_code == 404
        assert resp.body == {"error": USER_NOT_FOUND}
        assert identity.pages_requested == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_scan_is_bounded(self, limiter, settings):
        users = [DirectoryUser(id=f"u{i}", email=f"user{i}@example.com") for i in range(2000)]
        users[1500] = DirectoryUser(id="u-far", email="far@example.com")
        provider = InMemoryIdentityProvider(
            tokens={"tok": Caller(id="u-scan")}, users=users
        )
        service = LookupService(provider, limiter, settings)
        resp = await service.execute(_post("far@example.com", token="tok"))
        assert resp.status_code == 404
        assert provider.pages_requested == list(range(1, 21))

    @pytest.mark.asyncio
    async def test_page_size_from_settings(self, identity, limiter):
        settings = Settings(lookup=LookupConfig(page_size=10, max_pages=2))
        service = LookupService(identity, limiter, settings)
        resp = await service.execute(_post("late@example.com"))
        assert resp.status_code == 404
        assert identity.pages_requested == [1, 2]


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_unexpected_exception_is_500(self, lookup_service, identity):
        identity.list_users = AsyncMock(side_effect=RuntimeError("directory exploded"))
        resp = await lookup_service.execute(_post("alice@example.com"))
        assert resp.status_code == 500
        assert resp.body == {"error": "directory exploded"}

    @pytest.mark.asyncio
    async def test_integration_error_is_500(self, lookup_service, identity):
        identity.get_profile = AsyncMock(side_effect=CompassIntegrationError("profiles unavailable"))
        resp = await lookup_service.execute(_post("alice@example.com"))
        assert resp.status_code == 500
        assert resp.body == {"error": "profiles unavailable"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("request_kwargs,message", [
        ({"email": "a@b.co", "token": None}, UNAUTHORIZED),
        ({"email": "not-an-email"}, INVALID_EMAIL),
        ({"email": "nobody@example.com"}, USER_NOT_FOUND),
    ])
    async def test_uniform_status_flag(self, identity, limiter, uniform_settings, request_kwargs, message):
        service = LookupService(identity, limiter, uniform_settings)
        resp = await service.execute(_post(**request_kwargs))
        assert resp.status_code == 200
        assert resp.body == {"error": message}
        assert resp.is_error is True

    @pytest.mark.asyncio
    async def test_success_is_not_error(self, lookup_service):
        resp = await lookup_service.execute(_post("alice@example.com"))
        assert resp.is_error is False


class TestCorsOnResponses:
    @pytest.mark.asyncio
    async def test_allowed_origin_echoed_on_error(self, lookup_service):
        resp = await lookup_service.execute(_post("a@b.co", token=None, origin="http://localhost:5173"))
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    @pytest.mark.asyncio
    async def test_unknown_origin_gets_production(self, lookup_service):
        resp = await lookup_service.execute(_post("alice@example.com", origin="https://evil.example"))
        assert resp.headers["Access-Control-Allow-Origin"] == "https://project-compass-nine.vercel.app"

