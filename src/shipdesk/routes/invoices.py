"""Invoice endpoints."""

from __future__ import annotations

from datetime import date
from json import JSONDecodeError
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from starlette.datastructures import UploadFile

from shipdesk.dependencies import get_invoice_service, get_session_user
from shipdesk.exceptions import Unauthorized, ValidationFailed
from shipdesk.pipeline import UploadedDocument
from shipdesk.protocols import SessionUser
from shipdesk.routes.shipments import document_response
from shipdesk.schemas import InvoiceArchived, InvoiceOut

router = APIRouter()


async def _read_invoice_form(
    request: Request,
) -> tuple[dict[str, Any], UploadedDocument | None]:
    """Split a JSON or multipart body into fields and an optional file."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        fields: dict[str, Any] = {}
        document = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "file" and value.filename:
                    document = UploadedDocument(
                        filename=value.filename,
                        content_type=value.content_type or "",
                        data=await value.read(),
                    )
                continue
            fields[key] = value
        return fields, document

    try:
        body = await request.json()
    except JSONDecodeError as exc:
        raise ValidationFailed("Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise ValidationFailed("Invalid JSON body")
    return body, None


@router.get("/api/invoices", response_model=list[InvoiceOut])
async def list_invoices(
    status: str | None = None,
    customer_id: str | None = Query(None, alias="customerId"),
    shipment_id: str | None = Query(None, alias="shipmentId"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    service=Depends(get_invoice_service),
) -> list[InvoiceOut]:
    """List invoices; ``startDate`` bounds issue dates, ``endDate`` due dates."""
    return await service.list_invoices(
        status=status,
        customer_id=customer_id,
        shipment_id=shipment_id,
        issued_from=start_date,
        due_until=end_date,
    )


@router.get("/api/invoices/{invoice_id}", response_model=InvoiceOut)
async def get_invoice(
    invoice_id: str,
    service=Depends(get_invoice_service),
) -> InvoiceOut:
    return await service.get_invoice(invoice_id)


@router.post("/api/invoices", response_model=InvoiceOut, status_code=201)
async def create_invoice(
    request: Request,
    session_user: SessionUser | None = Depends(get_session_user),
    service=Depends(get_invoice_service),
) -> InvoiceOut:
    """Create an invoice from JSON, or from a form with an optional file."""
    if session_user is None:
        raise Unauthorized()

    fields, document = await _read_invoice_form(request)
    return await service.create_invoice(
        session_user=session_user,
        fields=fields,
        document=document,
    )


@router.put("/api/invoices/{invoice_id}", response_model=InvoiceOut)
async def update_invoice(
    invoice_id: str,
    request: Request,
    session_user: SessionUser | None = Depends(get_session_user),
    service=Depends(get_invoice_service),
) -> InvoiceOut:
    try:
        body = await request.json()
    except JSONDecodeError:
        body = {}
    return await service.update_invoice(
        session_user=session_user,
        invoice_id=invoice_id,
        body=body,
    )


@router.delete("/api/invoices/{invoice_id}", response_model=InvoiceArchived)
async def archive_invoice(
    invoice_id: str,
    session_user: SessionUser | None = Depends(get_session_user),
    service=Depends(get_invoice_service),
) -> InvoiceArchived:
    """Soft-delete an invoice."""
    return await service.archive_invoice(
        session_user=session_user,
        invoice_id=invoice_id,
    )


@router.get("/api/invoices/{invoice_id}/file")
async def get_invoice_file(
    invoice_id: str,
    download: bool = False,
    service=Depends(get_invoice_service),
) -> Response:
    document = await service.get_document(invoice_id)
    return document_response(document, download=download)
