"""Dependency providers for request handlers."""

from __future__ import annotations

from fastapi import Request

from shipdesk.clock import SystemClock
from shipdesk.config import ShipdeskConfig
from shipdesk.invoices import InvoiceService
from shipdesk.pipeline import ShipmentIngestionPipeline, Stamper
from shipdesk.protocols import (
    Clock,
    InvoiceRepository,
    ObjectStore,
    SessionResolver,
    SessionUser,
    ShipmentRepository,
)
from shipdesk.shipments import ShipmentManager
from shipdesk.stamping import PdfStamper
from shipdesk.verification import DeliveryVerificationFlow


def get_config(request: Request) -> ShipdeskConfig:
    """Read config from FastAPI app state."""
    return request.app.state.shipdesk_config


def get_shipment_repository(request: Request) -> ShipmentRepository:
    """Read shipment repository from FastAPI app state."""
    return request.app.state.shipdesk_shipment_repository


def get_invoice_repository(request: Request) -> InvoiceRepository:
    """Read invoice repository from FastAPI app state."""
    return request.app.state.shipdesk_invoice_repository


def get_object_store(request: Request) -> ObjectStore:
    """Read object store from FastAPI app state."""
    return request.app.state.shipdesk_object_store


def get_session_resolver(request: Request) -> SessionResolver | None:
    """Read session resolver from FastAPI app state."""
    return getattr(request.app.state, "shipdesk_session_resolver", None)


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "shipdesk_clock", None) or SystemClock()


def get_stamper(request: Request) -> Stamper:
    stamper = getattr(request.app.state, "shipdesk_stamper", None)
    if stamper is None:
        stamper = PdfStamper.from_config(get_config(request))
    return stamper


async def get_session_user(request: Request) -> SessionUser | None:
    """Resolve the caller's session; ``None`` when there is none."""
    resolver = get_session_resolver(request)
    if resolver is None:
        return None
    return await resolver.resolve(request)


def get_pipeline(request: Request) -> ShipmentIngestionPipeline:
    """Create the ingestion pipeline for the current request."""
    return ShipmentIngestionPipeline(
        repository=get_shipment_repository(request),
        object_store=get_object_store(request),
        stamper=get_stamper(request),
        clock=get_clock(request),
    )


def get_shipment_manager(request: Request) -> ShipmentManager:
    return ShipmentManager(
        repository=get_shipment_repository(request),
        object_store=get_object_store(request),
        clock=get_clock(request),
    )


def get_verification_flow(request: Request) -> DeliveryVerificationFlow:
    return DeliveryVerificationFlow(
        repository=get_shipment_repository(request),
        clock=get_clock(request),
    )


def get_invoice_service(request: Request) -> InvoiceService:
    return InvoiceService(
        repository=get_invoice_repository(request),
        object_store=get_object_store(request),
        clock=get_clock(request),
        config=get_config(request),
    )
