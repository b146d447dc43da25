"""Router factory for shipdesk."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from shipdesk.config import ShipdeskConfig
from shipdesk.pipeline import Stamper
from shipdesk.protocols import (
    Clock,
    InvoiceRepository,
    ObjectStore,
    SessionResolver,
    ShipmentRepository,
)
from shipdesk.routes.invoices import router as invoices_router
from shipdesk.routes.public import router as public_router
from shipdesk.routes.shipments import router as shipments_router


def create_logistics_router(
    *,
    config: ShipdeskConfig,
    shipment_repository: ShipmentRepository,
    invoice_repository: InvoiceRepository,
    object_store: ObjectStore,
    session_resolver: SessionResolver | None = None,
    clock: Clock | None = None,
    stamper: Stamper | None = None,
) -> APIRouter:
    """Create a configured API router.

    Exception handlers are not installed here; call
    ``register_exception_handlers`` on the app (``create_app`` does).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        app.state.shipdesk_config = config
        app.state.shipdesk_shipment_repository = shipment_repository
        app.state.shipdesk_invoice_repository = invoice_repository
        app.state.shipdesk_object_store = object_store
        app.state.shipdesk_session_resolver = session_resolver
        app.state.shipdesk_clock = clock
        app.state.shipdesk_stamper = stamper
        yield

    router = APIRouter(lifespan=lifespan)
    router.include_router(shipments_router)
    router.include_router(invoices_router)
    router.include_router(public_router)
    return router
