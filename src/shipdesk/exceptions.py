"""Error taxonomy and handlers mapping it to JSON responses."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ShipdeskError(Exception):
    """Base error. Carries the HTTP status and the ``error`` message."""

    status_code = 500
    message = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: Any = None,
    ) -> None:
        if message is not None:
            self.message = message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationFailed(ShipdeskError):
    status_code = 400
    message = "Validation failed"


class UnsupportedMediaType(ShipdeskError):
    status_code = 400
    message = "Only PDF files are accepted"


class BusinessRuleViolation(ShipdeskError):
    status_code = 400
    message = "Business rule violated"


class Unauthorized(ShipdeskError):
    status_code = 401
    message = "Unauthorized"


class NotFound(ShipdeskError):
    status_code = 404
    message = "Not found"


class ShipmentNotFoundError(NotFound):
    message = "Shipment not found"

    def __init__(self, shipment_id: str) -> None:
        self.shipment_id = shipment_id
        super().__init__()


class InvoiceNotFoundError(NotFound):
    message = "Invoice not found"

    def __init__(self, invoice_id: str) -> None:
        self.invoice_id = invoice_id
        super().__init__()


class InvalidTokenError(NotFound):
    message = "Invalid shipment token"


class FileNotFoundInStorage(NotFound):
    message = "File not found in storage"


class LinkExpired(ShipdeskError):
    status_code = 410
    message = "This link is no longer active"


class StampingFailed(ShipdeskError):
    message = "Failed to stamp PDF with QR code"


class MalformedDocument(StampingFailed):
    message = "Source document is not a readable PDF"


class ProcessingFailed(ShipdeskError):
    message = "Failed to process shipment document"


class StorageFailed(ShipdeskError):
    message = "Failed to upload file to storage"


class PersistenceFailed(ShipdeskError):
    message = "Failed to save shipment to database"


class ConfirmationFailed(ShipdeskError):
    message = "Failed to confirm shipment"


class ObjectStoreError(ShipdeskError):
    """Raised by object store adapters."""

    message = "Object store operation failed"


class IntegrityConflict(ShipdeskError):
    """Raised by repositories on unique constraint violations."""

    status_code = 409
    message = "Record conflicts with an existing one"


def register_exception_handlers(app: FastAPI) -> None:
    """Register shipdesk exception handlers on a FastAPI app.

    Every ``ShipdeskError`` renders as ``{"error": ..., "details"?: ...}``
    with the status code carried by the exception class. Request body
    validation errors raised by FastAPI itself render as 400 with the
    field errors in ``details``. Anything else is logged and renders as a
    bare 500 ``{"error": "Internal server error"}``.
    """

    @app.exception_handler(ShipdeskError)
    async def _shipdesk_error(
        request: Request,
        exc: ShipdeskError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_payload(),
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        details = [
            {
                "loc": [str(part) for part in error.get("loc", ())],
                "msg": error.get("msg", ""),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"error": "Validation failed", "details": details},
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": ShipdeskError.message},
        )
