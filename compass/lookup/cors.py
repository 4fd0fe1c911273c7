"""CORS headers for the lookup endpoint."""

from __future__ import annotations

from typing import Dict, List

ALLOWED_HEADERS = ", ".join([
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
    "x-supabase-client-platform",
    "x-supabase-client-platform-version",
    "x-supabase-client-runtime",
    "x-supabase-client-runtime-version",
])


def allowed_origins(cors) -> List[str]:
    """Exact-match allow-list: site URL, production domain, dev origins."""
    origins = [cors.site_url, cors.production_origin, *cors.dev_origins]
    return [o for o in origins if o]


def resolve_origin(origin: str, cors) -> str:
    """
    The value for Access-Control-Allow-Origin. Unknown origins get the
    production domain, never an omitted header.
    """
    if origin and (
        origin in allowed_origins(cors)
        or (cors.allowed_suffix and origin.endswith(cors.allowed_suffix))
    ):
        return origin
    return cors.production_origin


def cors_headers(origin: str, cors) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": resolve_origin(origin or "", cors),
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
    }
