"""Collaborator protocols and the records they exchange."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol, runtime_checkable

from fastapi import Request


@dataclass(frozen=True)
class StoredObject:
    """Blob read back from an object store."""

    data: bytes
    content_type: str


@dataclass(frozen=True)
class SessionUser:
    """Authenticated user resolved from a session."""

    id: str
    name: str
    email: str | None = None


@dataclass(frozen=True)
class ShipmentListRecord:
    header: Any
    created_by_name: str | None = None


@dataclass(frozen=True)
class PublicShipmentRecord:
    header: Any
    customer_name: str | None = None


@dataclass(frozen=True)
class InvoiceRecord:
    invoice: Any
    customer_name: str | None = None
    shipment_number: str | None = None
    created_by_name: str | None = None


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime: ...


@runtime_checkable
class ObjectStore(Protocol):
    """Byte blob storage keyed by path-like strings."""

    async def put(self, key: str, data: bytes, content_type: str) -> None: ...

    async def get(self, key: str) -> StoredObject | None: ...

    async def delete(self, key: str) -> None: ...


@runtime_checkable
class SessionResolver(Protocol):
    """Resolves the session attached to a request, if any."""

    async def resolve(self, request: Request) -> SessionUser | None: ...


@runtime_checkable
class ShipmentRepository(Protocol):
    """Relational storage for shipment headers and their details."""

    async def create_with_details(
        self,
        header: dict[str, Any],
        details: list[dict[str, Any]],
    ) -> tuple[Any, list[Any]]: ...

    async def list_with_creator(self) -> list[ShipmentListRecord]: ...

    async def get(self, shipment_id: str) -> Any | None: ...

    async def get_details(self, shipment_id: str) -> list[Any]: ...

    async def get_by_token(self, token: str) -> PublicShipmentRecord | None: ...

    async def update(
        self,
        shipment_id: str,
        *,
        status: str,
        details: list[dict[str, Any]] | None,
        updated_at: datetime,
    ) -> Any | None: ...

    async def delete_with_details(self, shipment_id: str) -> Any | None: ...

    async def confirm_delivery(
        self,
        shipment_id: str,
        *,
        delivery_comments: str | None,
        corrections: list[tuple[str, int]],
        updated_at: datetime,
    ) -> None: ...


@runtime_checkable
class InvoiceRepository(Protocol):
    """Relational storage for invoices. Soft-deleted rows are never read."""

    async def search(
        self,
        *,
        status: str | None = None,
        customer_id: str | None = None,
        shipment_id: str | None = None,
        issued_from: date | None = None,
        due_until: date | None = None,
    ) -> list[InvoiceRecord]: ...

    async def get(self, invoice_id: str) -> InvoiceRecord | None: ...

    async def get_by_number(self, invoice_number: str) -> Any | None: ...

    async def customer_exists(self, customer_id: str) -> bool: ...

    async def shipment_exists(self, shipment_id: str) -> bool: ...

    async def create(self, values: dict[str, Any]) -> Any: ...

    async def update(
        self, invoice_id: str, values: dict[str, Any]
    ) -> Any | None: ...

    async def soft_delete(
        self, invoice_id: str, deleted_at: datetime
    ) -> Any | None: ...
