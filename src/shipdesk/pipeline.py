"""Shipment ingestion: validate, stamp, upload, persist, compensate."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from shipdesk.exceptions import (
    PersistenceFailed,
    ProcessingFailed,
    StampingFailed,
    StorageFailed,
    Unauthorized,
    UnsupportedMediaType,
    ValidationFailed,
)
from shipdesk.links import build_verification_url, generate_public_token
from shipdesk.protocols import (
    Clock,
    ObjectStore,
    SessionUser,
    ShipmentRepository,
)
from shipdesk.saga import Saga, SagaStep
from shipdesk.schemas import Err, validate_shipment_payload

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"

Stamper = Callable[[bytes, str], bytes]


@dataclass(frozen=True)
class UploadedDocument:
    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class CreatedShipment:
    header: Any
    details: list[Any]


def original_file_key(shipment_number: str) -> str:
    return f"shipments/{shipment_number}/original.pdf"


def stamped_file_key(shipment_number: str) -> str:
    return f"shipments/{shipment_number}/stamped.pdf"


def is_pdf(document: UploadedDocument) -> bool:
    declared = (
        document.content_type.split(";")[0].strip().lower() == PDF_CONTENT_TYPE
        or document.filename.lower().endswith(".pdf")
    )
    # The header may be preceded by junk bytes; readers scan the first KiB.
    return declared and PDF_MAGIC in document.data[:1024]


class ShipmentIngestionPipeline:
    """Creates a shipment from a source PDF and its line items.

    Objects uploaded before a failed insert are deleted again; failures of
    that cleanup are logged and never replace the original error.
    """

    def __init__(
        self,
        *,
        repository: ShipmentRepository,
        object_store: ObjectStore,
        stamper: Stamper,
        clock: Clock,
        token_factory: Callable[[], str] = generate_public_token,
    ) -> None:
        self.repository = repository
        self.object_store = object_store
        self.stamper = stamper
        self.clock = clock
        self.token_factory = token_factory

    async def create_shipment(
        self,
        *,
        session_user: SessionUser | None,
        header: Any,
        details: Any,
        document: UploadedDocument | None,
        base_url: str,
        field_errors: list[dict[str, Any]] | None = None,
    ) -> CreatedShipment:
        """Run the whole ingestion.

        ``field_errors`` carries errors for fields the caller could not
        decode; they are reported together with every payload and file
        error, and those fields are not validated again.
        """
        if session_user is None:
            raise Unauthorized()

        errors = list(field_errors or ())
        undecoded = {error["loc"][0] for error in errors if error["loc"]}
        result = validate_shipment_payload(header, details)
        if isinstance(result, Err):
            errors.extend(
                error
                for error in result.errors
                if not error["loc"] or error["loc"][0] not in undecoded
            )
        if document is None:
            errors.append({"loc": ["file"], "msg": "File is required"})
        if errors:
            raise ValidationFailed(details=errors)
        payload = result.value

        if not is_pdf(document):
            raise UnsupportedMediaType()

        number = payload.header.shipment_number
        original_key = original_file_key(number)
        stamped_key = stamped_file_key(number)

        token = self.token_factory()
        verification_url = build_verification_url(base_url, token)

        try:
            stamped = await asyncio.to_thread(
                self.stamper, document.data, verification_url
            )
        except StampingFailed as exc:
            raise ProcessingFailed(details=exc.details or exc.message) from exc

        saga = Saga(f"create shipment {number}")

        logger.info("Uploading documents for shipment %s", number)
        try:
            await saga.run(
                SagaStep(
                    "upload original",
                    action=lambda: self.object_store.put(
                        original_key, document.data, PDF_CONTENT_TYPE
                    ),
                    compensation=lambda: self.object_store.delete(original_key),
                )
            )
            await saga.run(
                SagaStep(
                    "upload stamped",
                    action=lambda: self.object_store.put(
                        stamped_key, stamped, PDF_CONTENT_TYPE
                    ),
                    compensation=lambda: self.object_store.delete(stamped_key),
                )
            )
        except Exception as exc:
            logger.error("Upload failed for shipment %s: %s", number, exc)
            await saga.compensate()
            raise StorageFailed(details=str(exc)) from exc
        logger.info("Uploaded %s and %s", original_key, stamped_key)

        now = self.clock.now()
        header_id = str(uuid.uuid4())
        header_values = {
            "id": header_id,
            "shipment_number": number,
            "customer_id": payload.header.customer_id,
            "original_file_key": original_key,
            "stamped_file_key": stamped_key,
            "status": payload.header.status,
            "public_token": token,
            "is_link_active": True,
            "delivery_comments": None,
            "created_by": session_user.id,
            "created_at": now,
            "updated_at": now,
        }
        detail_values = [
            {
                "id": str(uuid.uuid4()),
                "shipment_header_id": header_id,
                "line_number": line_number,
                "item_code": detail.item_code,
                "item_description": detail.item_description,
                "quantity": detail.quantity,
                "qty_delivered": None,
                "status": detail.status,
                "created_at": now,
                "updated_at": now,
            }
            for line_number, detail in enumerate(payload.details, start=1)
        ]

        logger.info("Inserting shipment %s (%s)", number, header_id)
        try:
            created_header, created_details = await saga.run(
                SagaStep(
                    "insert shipment",
                    action=lambda: self.repository.create_with_details(
                        header_values, detail_values
                    ),
                )
            )
        except Exception as exc:
            logger.error("Database insert failed for shipment %s: %s", number, exc)
            failed = await saga.compensate()
            if failed:
                logger.error(
                    "Shipment %s left orphaned objects after cleanup: %s",
                    number,
                    ", ".join(failed),
                )
            raise PersistenceFailed(details=str(exc)) from exc

        logger.info(
            "Created shipment %s with %d detail(s)",
            header_id,
            len(created_details),
        )
        return CreatedShipment(header=created_header, details=created_details)
