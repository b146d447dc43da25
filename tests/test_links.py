"""Verification link tests."""

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from shipdesk.config import ShipdeskConfig
from shipdesk.links import (
    build_verification_url,
    generate_public_token,
    resolve_public_base_url,
)


def _client(config: ShipdeskConfig) -> TestClient:
    app = FastAPI()

    @app.get("/base")
    async def base(request: Request) -> dict[str, str]:
        return {"base": resolve_public_base_url(config, request)}

    return TestClient(app)


def test_tokens_are_unique_and_url_safe() -> None:
    tokens = {generate_public_token() for _ in range(200)}
    assert len(tokens) == 200
    for token in tokens:
        assert len(token) >= 43
        assert all(c.isalnum() or c in "-_" for c in token)


def test_build_verification_url_strips_trailing_slash() -> None:
    assert (
        build_verification_url("https://app.example.com/", "tok")
        == "https://app.example.com/verify/tok"
    )


def test_explicit_public_base_url_wins() -> None:
    client = _client(ShipdeskConfig(public_base_url="https://app.example.com/"))
    resp = client.get("/base", headers={"Origin": "https://other.example.com"})
    assert resp.json() == {"base": "https://app.example.com"}


def test_origin_header_used_when_unset() -> None:
    client = _client(ShipdeskConfig())
    resp = client.get("/base", headers={"Origin": "https://preview.example.com"})
    assert resp.json() == {"base": "https://preview.example.com"}


def test_dev_api_origin_maps_to_web_origin() -> None:
    client = _client(ShipdeskConfig())
    resp = client.get("/base", headers={"Origin": "http://localhost:8787"})
    assert resp.json() == {"base": "http://localhost:5173"}


def test_falls_back_to_request_base_url() -> None:
    client = _client(ShipdeskConfig())
    resp = client.get("/base")
    assert resp.json() == {"base": "http://testserver"}
