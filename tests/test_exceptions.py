"""Exception handler tests."""

from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from shipdesk.exceptions import (
    LinkExpired,
    MalformedDocument,
    PersistenceFailed,
    ShipdeskError,
    ShipmentNotFoundError,
    StampingFailed,
    Unauthorized,
    ValidationFailed,
    register_exception_handlers,
)


def _create_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    return app


def test_shipment_not_found_error_has_shipment_id() -> None:
    exc = ShipmentNotFoundError("ship-42")
    assert exc.shipment_id == "ship-42"
    assert exc.status_code == 404
    assert str(exc) == "Shipment not found"


def test_payload_omits_details_when_absent() -> None:
    assert Unauthorized().to_payload() == {"error": "Unauthorized"}


def test_payload_includes_details() -> None:
    exc = ValidationFailed(details=[{"loc": ["header"], "msg": "required"}])
    assert exc.to_payload() == {
        "error": "Validation failed",
        "details": [{"loc": ["header"], "msg": "required"}],
    }


def test_custom_message_overrides_class_default() -> None:
    exc = PersistenceFailed("Failed to update shipment")
    assert exc.message == "Failed to update shipment"
    assert PersistenceFailed().message == "Failed to save shipment to database"


def test_malformed_document_is_a_stamping_failure() -> None:
    assert issubclass(MalformedDocument, StampingFailed)


def test_link_expired_returns_410() -> None:
    app = _create_app()

    @app.get("/boom")
    async def boom():
        raise LinkExpired()

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 410
    assert resp.json() == {"error": "This link is no longer active"}


def test_persistence_failure_returns_500_with_details() -> None:
    app = _create_app()

    @app.get("/boom")
    async def boom():
        raise PersistenceFailed(details="UNIQUE constraint failed")

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    assert resp.json() == {
        "error": "Failed to save shipment to database",
        "details": "UNIQUE constraint failed",
    }


def test_base_error_uses_its_status_code() -> None:
    class Teapot(ShipdeskError):
        status_code = 418
        message = "short and stout"

    app = _create_app()

    @app.get("/boom")
    async def boom():
        raise Teapot()

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 418
    assert resp.json() == {"error": "short and stout"}


def test_request_validation_error_returns_400() -> None:
    class Body(BaseModel):
        status: str

    app = _create_app()

    @app.post("/items")
    async def items(body: Body):
        return body

    client = TestClient(app)
    resp = client.post("/items", json={})
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation failed"
    assert body["details"][0]["loc"] == ["body", "status"]


def test_unexpected_error_returns_json_500() -> None:
    app = _create_app()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database is locked")

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}
