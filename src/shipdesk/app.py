"""Application factory wiring the SQLAlchemy adapters."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shipdesk.config import ShipdeskConfig
from shipdesk.contrib.sqlalchemy.models import (
    Base,
    enable_sqlite_foreign_keys,
)
from shipdesk.contrib.sqlalchemy.repository import (
    SQLAlchemyInvoiceRepository,
    SQLAlchemyShipmentRepository,
)
from shipdesk.contrib.sqlalchemy.sessions import SQLAlchemySessionResolver
from shipdesk.exceptions import register_exception_handlers
from shipdesk.pipeline import Stamper
from shipdesk.protocols import Clock, ObjectStore
from shipdesk.router import create_logistics_router
from shipdesk.storage import FileSystemObjectStore

logger = logging.getLogger(__name__)


def create_app(
    config: ShipdeskConfig | None = None,
    *,
    engine: AsyncEngine | None = None,
    object_store: ObjectStore | None = None,
    clock: Clock | None = None,
    stamper: Stamper | None = None,
    create_tables: bool = False,
) -> FastAPI:
    """Build the back-office API.

    Without an explicit engine or object store, ``config.database_url``
    and ``config.storage_root`` are used. With ``create_tables`` the
    schema is created on startup. SQLite engines get foreign key
    enforcement on connections opened from here on.
    """
    config = config or ShipdeskConfig()
    engine = engine or create_async_engine(config.database_url, echo=False)
    enable_sqlite_foreign_keys(engine)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    object_store = object_store or FileSystemObjectStore(config.storage_root)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        if create_tables:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("shipdesk started")
        yield
        await engine.dispose()

    app = FastAPI(title="shipdesk", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_origin_regex=config.allowed_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(
        create_logistics_router(
            config=config,
            shipment_repository=SQLAlchemyShipmentRepository(session_factory),
            invoice_repository=SQLAlchemyInvoiceRepository(session_factory),
            object_store=object_store,
            session_resolver=SQLAlchemySessionResolver(
                session_factory,
                cookie_name=config.session_cookie_name,
                clock=clock,
            ),
            clock=clock,
            stamper=stamper,
        )
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Healthcheck endpoint."""
        return {"status": "ok"}

    return app
