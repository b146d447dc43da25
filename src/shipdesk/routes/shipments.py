"""Shipment endpoints."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import Response

from shipdesk.config import ShipdeskConfig
from shipdesk.dependencies import (
    get_config,
    get_pipeline,
    get_session_user,
    get_shipment_manager,
)
from shipdesk.exceptions import Unauthorized
from shipdesk.links import resolve_public_base_url
from shipdesk.pipeline import UploadedDocument
from shipdesk.protocols import SessionUser
from shipdesk.schemas import (
    ShipmentHeaderOut,
    ShipmentListItem,
    ShipmentWithDetails,
    UpdateShipmentRequest,
)
from shipdesk.shipments import DocumentDownload, FileVariant

router = APIRouter()


def _parse_json_field(
    name: str, raw: str | None, errors: list[dict[str, Any]]
) -> Any:
    """Decode a JSON form field, recording a field error instead of raising."""
    if raw is None:
        errors.append({"loc": [name], "msg": f"{name} is required"})
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        errors.append({"loc": [name], "msg": f"{name} is not valid JSON"})
        return None


def document_response(document: DocumentDownload, *, download: bool) -> Response:
    disposition = "attachment" if download else "inline"
    return Response(
        content=document.data,
        media_type=document.content_type,
        headers={
            "Content-Disposition": (
                f'{disposition}; filename="{document.filename}"'
            ),
        },
    )


@router.get("/api/shipments", response_model=list[ShipmentListItem])
async def list_shipments(
    manager=Depends(get_shipment_manager),
) -> list[ShipmentListItem]:
    """List shipment headers with the creator's name."""
    return await manager.list_shipments()


@router.post(
    "/api/shipments",
    response_model=ShipmentWithDetails,
    status_code=201,
)
async def create_shipment(
    request: Request,
    file: UploadFile | None = File(None),
    header: str | None = Form(None),
    details: str | None = Form(None),
    session_user: SessionUser | None = Depends(get_session_user),
    config: ShipdeskConfig = Depends(get_config),
    pipeline=Depends(get_pipeline),
) -> ShipmentWithDetails:
    """Create a shipment from a PDF upload plus header and detail JSON."""
    if session_user is None:
        raise Unauthorized()

    document = None
    if file is not None:
        document = UploadedDocument(
            filename=file.filename or "",
            content_type=file.content_type or "",
            data=await file.read(),
        )

    errors: list[dict[str, Any]] = []
    created = await pipeline.create_shipment(
        session_user=session_user,
        header=_parse_json_field("header", header, errors),
        details=_parse_json_field("details", details, errors),
        document=document,
        base_url=resolve_public_base_url(config, request),
        field_errors=errors,
    )
    return ShipmentWithDetails.from_models(created.header, created.details)


@router.get("/api/shipments/{shipment_id}", response_model=ShipmentWithDetails)
async def get_shipment(
    shipment_id: str,
    manager=Depends(get_shipment_manager),
) -> ShipmentWithDetails:
    return await manager.get_shipment(shipment_id)


@router.put("/api/shipments/{shipment_id}", response_model=ShipmentHeaderOut)
async def update_shipment(
    shipment_id: str,
    body: UpdateShipmentRequest,
    manager=Depends(get_shipment_manager),
) -> ShipmentHeaderOut:
    """Update status; a ``details`` list replaces every line item."""
    return await manager.update_shipment(shipment_id, body)


@router.delete("/api/shipments/{shipment_id}", response_model=ShipmentHeaderOut)
async def delete_shipment(
    shipment_id: str,
    manager=Depends(get_shipment_manager),
) -> ShipmentHeaderOut:
    return await manager.delete_shipment(shipment_id)


@router.get("/api/shipments/{shipment_id}/file")
async def get_shipment_file(
    shipment_id: str,
    download: bool = False,
    variant: FileVariant | None = Query(None, alias="type"),
    manager=Depends(get_shipment_manager),
) -> Response:
    """Stream the original or stamped document."""
    document = await manager.get_document(shipment_id, variant)
    return document_response(document, download=download)
