"""Public verification tokens and links."""

from __future__ import annotations

import secrets

from fastapi import Request

from shipdesk.config import ShipdeskConfig

TOKEN_BYTES = 32


def generate_public_token() -> str:
    """Return a URL-safe token with 256 bits of randomness."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def build_verification_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/verify/{token}"


def resolve_public_base_url(config: ShipdeskConfig, request: Request) -> str:
    """Pick the web app origin that verification links point to.

    An explicit ``public_base_url`` wins. Otherwise the request ``Origin``
    header is used (falling back to the request's own base URL), with the
    local API origin swapped for the local web app origin.
    """
    if config.public_base_url:
        return config.public_base_url.rstrip("/")

    origin = request.headers.get("origin") or str(request.base_url)
    origin = origin.rstrip("/")
    if origin == config.dev_api_origin.rstrip("/"):
        return config.dev_web_origin.rstrip("/")
    return origin
