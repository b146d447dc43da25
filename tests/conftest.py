"""Shared fixtures for shipdesk tests."""

from __future__ import annotations

import io
from collections.abc import Callable
from contextlib import ExitStack
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from reportlab.pdfgen import canvas

from shipdesk.config import ShipdeskConfig
from shipdesk.exceptions import IntegrityConflict, register_exception_handlers
from shipdesk.protocols import (
    InvoiceRecord,
    PublicShipmentRecord,
    SessionUser,
    ShipmentListRecord,
    StoredObject,
)
from shipdesk.router import create_logistics_router

NOW = datetime(2025, 3, 14, 9, 30, tzinfo=UTC)


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


class InMemoryObjectStore:
    def __init__(self) -> None:
        self.objects: dict[str, StoredObject] = {}
        self.puts: list[str] = []
        self.deletes: list[str] = []

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        self.puts.append(key)
        self.objects[key] = StoredObject(data=data, content_type=content_type)

    async def get(self, key: str) -> StoredObject | None:
        return self.objects.get(key)

    async def delete(self, key: str) -> None:
        self.deletes.append(key)
        self.objects.pop(key, None)


class FailingObjectStore(InMemoryObjectStore):
    """Fails ``put`` for keys containing ``fail_put_on``; optionally deletes."""

    def __init__(
        self,
        *,
        fail_put_on: str | None = None,
        fail_delete: bool = False,
    ) -> None:
        super().__init__()
        self.fail_put_on = fail_put_on
        self.fail_delete = fail_delete

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_put_on is not None and self.fail_put_on in key:
            raise OSError(f"bucket unavailable for {key}")
        await super().put(key, data, content_type)

    async def delete(self, key: str) -> None:
        if self.fail_delete:
            self.deletes.append(key)
            raise OSError(f"cannot delete {key}")
        await super().delete(key)


class InMemoryShipmentRepository:
    def __init__(self) -> None:
        self.headers: dict[str, SimpleNamespace] = {}
        self.details: dict[str, SimpleNamespace] = {}
        self.users: dict[str, str] = {}
        self.customers: dict[str, str] = {}
        self.create_error: Exception | None = None
        self.confirm_error: Exception | None = None

    def add(
        self,
        header: dict[str, Any],
        details: list[dict[str, Any]] | None = None,
    ) -> SimpleNamespace:
        """Seed a shipment directly, bypassing the pipeline."""
        stored = SimpleNamespace(**header)
        self.headers[stored.id] = stored
        for detail in details or []:
            self.details[detail["id"]] = SimpleNamespace(**detail)
        return stored

    async def create_with_details(
        self,
        header: dict[str, Any],
        details: list[dict[str, Any]],
    ) -> tuple[SimpleNamespace, list[SimpleNamespace]]:
        if self.create_error is not None:
            raise self.create_error
        if any(
            h.shipment_number == header["shipment_number"]
            for h in self.headers.values()
        ):
            raise IntegrityConflict(details="shipment_number is not unique")
        stored = self.add(header, details)
        return stored, [self.details[d["id"]] for d in details]

    async def list_with_creator(self) -> list[ShipmentListRecord]:
        headers = sorted(
            self.headers.values(), key=lambda h: h.created_at, reverse=True
        )
        return [
            ShipmentListRecord(
                header=h, created_by_name=self.users.get(h.created_by)
            )
            for h in headers
        ]

    async def get(self, shipment_id: str) -> SimpleNamespace | None:
        return self.headers.get(shipment_id)

    async def get_details(self, shipment_id: str) -> list[SimpleNamespace]:
        return sorted(
            (
                d
                for d in self.details.values()
                if d.shipment_header_id == shipment_id
            ),
            key=lambda d: d.line_number,
        )

    async def get_by_token(self, token: str) -> PublicShipmentRecord | None:
        for header in self.headers.values():
            if header.public_token == token:
                return PublicShipmentRecord(
                    header=header,
                    customer_name=self.customers.get(header.customer_id),
                )
        return None

    async def update(
        self,
        shipment_id: str,
        *,
        status: str,
        details: list[dict[str, Any]] | None,
        updated_at: datetime,
    ) -> SimpleNamespace | None:
        header = self.headers.get(shipment_id)
        if header is None:
            return None
        header.status = status
        header.updated_at = updated_at
        if details is not None:
            for existing in await self.get_details(shipment_id):
                del self.details[existing.id]
            for detail in details:
                self.details[detail["id"]] = SimpleNamespace(**detail)
        return header

    async def delete_with_details(
        self, shipment_id: str
    ) -> SimpleNamespace | None:
        header = self.headers.pop(shipment_id, None)
        if header is None:
            return None
        for existing in await self.get_details(shipment_id):
            del self.details[existing.id]
        return header

    async def confirm_delivery(
        self,
        shipment_id: str,
        *,
        delivery_comments: str | None,
        corrections: list[tuple[str, int]],
        updated_at: datetime,
    ) -> None:
        if self.confirm_error is not None:
            raise self.confirm_error
        header = self.headers[shipment_id]
        header.delivery_comments = delivery_comments
        header.status = "Delivered"
        header.updated_at = updated_at
        for detail_id, qty in corrections:
            detail = self.details.get(detail_id)
            if detail is None or detail.shipment_header_id != shipment_id:
                continue
            detail.qty_delivered = qty
            detail.updated_at = updated_at


class InMemoryInvoiceRepository:
    def __init__(self) -> None:
        self.invoices: dict[str, SimpleNamespace] = {}
        self.customers: dict[str, str] = {}
        self.shipments: dict[str, str] = {}
        self.users: dict[str, str] = {}
        self.create_error: Exception | None = None

    def _record(self, invoice: SimpleNamespace) -> InvoiceRecord:
        return InvoiceRecord(
            invoice=invoice,
            customer_name=self.customers.get(invoice.customer_id),
            shipment_number=self.shipments.get(invoice.shipment_id),
            created_by_name=self.users.get(invoice.created_by),
        )

    def _live(self) -> list[SimpleNamespace]:
        return [i for i in self.invoices.values() if i.deleted_at is None]

    async def search(
        self,
        *,
        status: str | None = None,
        customer_id: str | None = None,
        shipment_id: str | None = None,
        issued_from=None,
        due_until=None,
    ) -> list[InvoiceRecord]:
        found = []
        for invoice in self._live():
            if status and invoice.status != status:
                continue
            if customer_id and invoice.customer_id != customer_id:
                continue
            if shipment_id and invoice.shipment_id != shipment_id:
                continue
            if issued_from and invoice.issue_date < issued_from:
                continue
            if due_until and invoice.due_date > due_until:
                continue
            found.append(invoice)
        found.sort(key=lambda i: i.created_at, reverse=True)
        return [self._record(i) for i in found]

    async def get(self, invoice_id: str) -> InvoiceRecord | None:
        invoice = self.invoices.get(invoice_id)
        if invoice is None or invoice.deleted_at is not None:
            return None
        return self._record(invoice)

    async def get_by_number(
        self, invoice_number: str
    ) -> SimpleNamespace | None:
        for invoice in self.invoices.values():
            if invoice.invoice_number == invoice_number:
                return invoice
        return None

    async def customer_exists(self, customer_id: str) -> bool:
        return customer_id in self.customers

    async def shipment_exists(self, shipment_id: str) -> bool:
        return shipment_id in self.shipments

    async def create(self, values: dict[str, Any]) -> SimpleNamespace:
        if self.create_error is not None:
            raise self.create_error
        invoice = SimpleNamespace(**values)
        self.invoices[invoice.id] = invoice
        return invoice

    async def update(
        self, invoice_id: str, values: dict[str, Any]
    ) -> SimpleNamespace | None:
        invoice = self.invoices.get(invoice_id)
        if invoice is None or invoice.deleted_at is not None:
            return None
        for key, value in values.items():
            setattr(invoice, key, value)
        return invoice

    async def soft_delete(
        self, invoice_id: str, deleted_at: datetime
    ) -> SimpleNamespace | None:
        invoice = self.invoices.get(invoice_id)
        if invoice is None or invoice.deleted_at is not None:
            return None
        archived = replace_namespace(invoice, deleted_at=deleted_at)
        self.invoices[invoice_id] = archived
        return archived


def replace_namespace(ns: SimpleNamespace, **changes: Any) -> SimpleNamespace:
    return SimpleNamespace(**{**vars(ns), **changes})


class StaticSessionResolver:
    def __init__(self, user: SessionUser | None) -> None:
        self.user = user

    async def resolve(self, request) -> SessionUser | None:
        return self.user


def make_pdf(pages: int = 1, text: str = "Delivery note") -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer)
    for number in range(1, pages + 1):
        pdf.drawString(72, 720, f"{text} page {number}")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def recording_stamper(calls: list[tuple[bytes, str]]) -> Callable[[bytes, str], bytes]:
    """Stamper double that records its inputs and tags the output."""

    def _stamp(source: bytes, url: str) -> bytes:
        calls.append((source, url))
        return source + b"\n%stamped " + url.encode()

    return _stamp


def seed_shipment(
    repository: InMemoryShipmentRepository,
    *,
    shipment_id: str = "hdr-1",
    number: str = "SHP-100",
    token: str = "tok-100",
    status: str = "On Going",
    is_link_active: bool = True,
    quantities: tuple[int, ...] = (5, 2),
) -> SimpleNamespace:
    header = {
        "id": shipment_id,
        "shipment_number": number,
        "customer_id": "cust-1",
        "original_file_key": f"shipments/{number}/original.pdf",
        "stamped_file_key": f"shipments/{number}/stamped.pdf",
        "status": status,
        "public_token": token,
        "is_link_active": is_link_active,
        "delivery_comments": None,
        "created_by": "user-1",
        "created_at": NOW,
        "updated_at": NOW,
    }
    details = [
        {
            "id": f"{shipment_id}-d{line}",
            "shipment_header_id": shipment_id,
            "line_number": line,
            "item_code": f"A{line}",
            "item_description": f"Item {line}",
            "quantity": quantity,
            "qty_delivered": None,
            "status": "pending",
            "created_at": NOW,
            "updated_at": NOW,
        }
        for line, quantity in enumerate(quantities, start=1)
    ]
    return repository.add(header, details)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def shipment_repository() -> InMemoryShipmentRepository:
    repository = InMemoryShipmentRepository()
    repository.users["user-1"] = "Dana Admin"
    repository.customers["cust-1"] = "Acme Corp"
    return repository


@pytest.fixture()
def invoice_repository() -> InMemoryInvoiceRepository:
    repository = InMemoryInvoiceRepository()
    repository.customers["cust-1"] = "Acme Corp"
    repository.shipments["hdr-1"] = "SHP-100"
    repository.users["user-1"] = "Dana Admin"
    return repository


@pytest.fixture()
def session_user() -> SessionUser:
    return SessionUser(id="user-1", name="Dana Admin", email="dana@example.com")


@pytest.fixture()
def config() -> ShipdeskConfig:
    return ShipdeskConfig(public_base_url="https://app.example.com")


@pytest.fixture()
def sample_pdf() -> bytes:
    return make_pdf(pages=2)


@pytest.fixture()
def stamp_calls() -> list[tuple[bytes, str]]:
    return []


@pytest.fixture()
def make_client(
    config,
    shipment_repository,
    invoice_repository,
    object_store,
    clock,
    stamp_calls,
):
    """Build a started TestClient; pass ``user=None`` for an anonymous caller."""

    def _make(
        *,
        user: SessionUser | None = SessionUser(id="user-1", name="Dana Admin"),
        store=None,
        stamper=None,
        app_config: ShipdeskConfig | None = None,
        raise_server_exceptions: bool = True,
    ) -> TestClient:
        app = FastAPI()
        register_exception_handlers(app)
        app.include_router(
            create_logistics_router(
                config=app_config or config,
                shipment_repository=shipment_repository,
                invoice_repository=invoice_repository,
                object_store=store or object_store,
                session_resolver=StaticSessionResolver(user),
                clock=clock,
                stamper=stamper or recording_stamper(stamp_calls),
            )
        )
        return stack.enter_context(
            TestClient(app, raise_server_exceptions=raise_server_exceptions)
        )

    with ExitStack() as stack:
        yield _make


@pytest.fixture()
async def async_engine():
    """Create an in-memory aiosqlite async engine."""
    from sqlalchemy.ext.asyncio import create_async_engine

    from shipdesk.contrib.sqlalchemy.models import Base

    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def async_session_factory(async_engine):
    """Create an async session factory bound to the in-memory engine."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    yield factory
