"""Logistics back-office API public API."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "InvoiceRepository",
    "ObjectStore",
    "SessionResolver",
    "ShipdeskConfig",
    "ShipmentNotFoundError",
    "ShipmentRepository",
    "__version__",
    "create_app",
    "create_logistics_router",
    "register_exception_handlers",
]

if TYPE_CHECKING:
    from shipdesk.app import create_app
    from shipdesk.config import ShipdeskConfig
    from shipdesk.exceptions import (
        ShipmentNotFoundError,
        register_exception_handlers,
    )
    from shipdesk.protocols import (
        InvoiceRepository,
        ObjectStore,
        SessionResolver,
        ShipmentRepository,
    )
    from shipdesk.router import create_logistics_router


def __getattr__(name: str):
    # Lazy imports to avoid loading all submodules on package import.
    if name == "ShipdeskConfig":
        from shipdesk.config import ShipdeskConfig

        return ShipdeskConfig
    if name == "create_logistics_router":
        from shipdesk.router import create_logistics_router

        return create_logistics_router
    if name == "create_app":
        from shipdesk.app import create_app

        return create_app
    if name in ("ShipmentNotFoundError", "register_exception_handlers"):
        from shipdesk import exceptions

        return getattr(exceptions, name)
    if name in (
        "InvoiceRepository",
        "ObjectStore",
        "SessionResolver",
        "ShipmentRepository",
    ):
        from shipdesk import protocols

        return getattr(protocols, name)
    raise AttributeError(f"module 'shipdesk' has no attribute {name!r}")
