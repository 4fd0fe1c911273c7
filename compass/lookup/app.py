"""
Lookup HTTP surface — FastAPI application for the email lookup endpoint.

Routes:
    POST    /find-user-by-email   {"email": "..."} → {"id", "name"} | {"error"}
    OPTIONS /find-user-by-email   CORS preflight
    GET     /health               liveness, no auth

Run:
    compass serve --port 9100
or:
    uvicorn compass.lookup.app:create_app --factory --port 9100
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from compass import __version__
from compass.engine.config import Settings, get_settings
from compass.engine.rate_limit import FixedWindowRateLimiter, create_rate_limiter
from compass.lookup.identity import HttpIdentityProvider, IdentityProvider
from compass.lookup.service import LookupRequest, LookupService

logger = logging.getLogger("compass.lookup.app")

LOOKUP_PATH = "/find-user-by-email"


async def starlette_to_lookup_request(request: Request) -> LookupRequest:
    """Convert a Starlette/FastAPI Request into a LookupRequest."""
    body = None
    if request.method == "POST":
        try:
            body = await request.json()
        except ValueError:
            # Malformed JSON reads as "no email"
            body = None

    return LookupRequest(
        method=request.method,
        headers={k.lower(): v for k, v in request.headers.items()},
        body=body,
    )


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[IdentityProvider] = None,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
) -> FastAPI:
    settings = settings or get_settings()
    provider = provider or HttpIdentityProvider.from_settings(settings)
    rate_limiter = rate_limiter or create_rate_limiter(settings)
    service = LookupService(provider, rate_limiter, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Lookup service starting ({settings.environment})")
        yield
        await provider.aclose()

    app = FastAPI(
        title="Compass Lookup Service",
        description="Resolve an email address to a registered user id and display name",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.lookup_service = service

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    @app.api_route(LOOKUP_PATH, methods=["POST", "OPTIONS"])
    async def find_user_by_email(request: Request):
        result = await service.execute(await starlette_to_lookup_request(request))
        if result.body is None:
            return Response(content="ok", status_code=result.status_code, headers=result.headers)
        return JSONResponse(result.body, status_code=result.status_code, headers=result.headers)

    return app
