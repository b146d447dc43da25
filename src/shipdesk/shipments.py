"""Shipment maintenance: listing, update, delete and document access."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Literal

from shipdesk.exceptions import (
    FileNotFoundInStorage,
    NotFound,
    PersistenceFailed,
    ShipmentNotFoundError,
)
from shipdesk.protocols import Clock, ObjectStore, ShipmentRepository
from shipdesk.schemas import (
    DETAIL_DEFAULT_STATUS,
    ShipmentHeaderOut,
    ShipmentListItem,
    ShipmentWithDetails,
    UpdateShipmentRequest,
)

logger = logging.getLogger(__name__)

FileVariant = Literal["original", "stamped"]


@dataclass(frozen=True)
class DocumentDownload:
    filename: str
    content_type: str
    data: bytes


class ShipmentManager:
    def __init__(
        self,
        *,
        repository: ShipmentRepository,
        object_store: ObjectStore,
        clock: Clock,
    ) -> None:
        self.repository = repository
        self.object_store = object_store
        self.clock = clock

    async def list_shipments(self) -> list[ShipmentListItem]:
        records = await self.repository.list_with_creator()
        return [
            ShipmentListItem(
                **ShipmentHeaderOut.model_validate(record.header).model_dump(),
                created_by_name=record.created_by_name,
            )
            for record in records
        ]

    async def get_shipment(self, shipment_id: str) -> ShipmentWithDetails:
        header = await self.repository.get(shipment_id)
        if header is None:
            raise ShipmentNotFoundError(shipment_id)
        details = await self.repository.get_details(shipment_id)
        return ShipmentWithDetails.from_models(header, details)

    async def update_shipment(
        self, shipment_id: str, request: UpdateShipmentRequest
    ) -> ShipmentHeaderOut:
        """Set the status and, when given, replace the whole detail set."""
        now = self.clock.now()
        details = None
        if request.details is not None:
            details = [
                {
                    "id": str(uuid.uuid4()),
                    "shipment_header_id": shipment_id,
                    "line_number": line_number,
                    "item_code": detail.item_code,
                    "item_description": detail.item_description,
                    "quantity": detail.quantity,
                    "qty_delivered": None,
                    "status": DETAIL_DEFAULT_STATUS,
                    "created_at": now,
                    "updated_at": now,
                }
                for line_number, detail in enumerate(request.details, start=1)
            ]

        try:
            header = await self.repository.update(
                shipment_id,
                status=request.status,
                details=details,
                updated_at=now,
            )
        except Exception as exc:
            logger.exception("Error updating shipment %s", shipment_id)
            raise PersistenceFailed(
                "Failed to update shipment", details=str(exc)
            ) from exc

        if header is None:
            raise ShipmentNotFoundError(shipment_id)
        return ShipmentHeaderOut.model_validate(header)

    async def delete_shipment(self, shipment_id: str) -> ShipmentHeaderOut:
        """Delete details and header together, then their documents.

        Document removal is best-effort and never fails the request.
        """
        header = await self.repository.delete_with_details(shipment_id)
        if header is None:
            raise ShipmentNotFoundError(shipment_id)
        deleted = ShipmentHeaderOut.model_validate(header)

        for key in (deleted.original_file_key, deleted.stamped_file_key):
            if not key:
                continue
            try:
                await self.object_store.delete(key)
            except Exception:
                logger.exception(
                    "Failed to delete %s for shipment %s", key, shipment_id
                )
        return deleted

    async def get_document(
        self,
        shipment_id: str,
        variant: FileVariant | None = None,
    ) -> DocumentDownload:
        header = await self.repository.get(shipment_id)
        if header is None:
            raise ShipmentNotFoundError(shipment_id)

        key = _pick_key(header, variant)
        if not key:
            raise NotFound("No file attached")

        stored = await self.object_store.get(key)
        if stored is None:
            raise FileNotFoundInStorage()

        return DocumentDownload(
            filename=key.rsplit("/", 1)[-1] or "download",
            content_type=stored.content_type or "application/octet-stream",
            data=stored.data,
        )


def _pick_key(header: Any, variant: FileVariant | None) -> str | None:
    if variant == "original":
        return header.original_file_key
    if variant == "stamped":
        return header.stamped_file_key
    return header.stamped_file_key or header.original_file_key
