"""Invoice lifecycle with optional document attachment."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from shipdesk.config import ShipdeskConfig
from shipdesk.exceptions import (
    BusinessRuleViolation,
    FileNotFoundInStorage,
    InvoiceNotFoundError,
    NotFound,
    ShipdeskError,
    ShipmentNotFoundError,
    StorageFailed,
    Unauthorized,
    UnsupportedMediaType,
    ValidationFailed,
)
from shipdesk.pipeline import PDF_CONTENT_TYPE, UploadedDocument
from shipdesk.protocols import Clock, InvoiceRepository, ObjectStore, SessionUser
from shipdesk.saga import Saga, SagaStep
from shipdesk.schemas import (
    EntryType,
    InvoiceArchived,
    InvoiceCreate,
    InvoiceOut,
    InvoiceUpdate,
    field_errors,
)
from shipdesk.shipments import DocumentDownload

logger = logging.getLogger(__name__)


def invoice_file_key(content_type: str) -> str:
    ext = "pdf" if content_type == PDF_CONTENT_TYPE else content_type.split("/")[-1]
    return f"invoices/{uuid.uuid4()}.{ext}"


def _same_amount(requested: Decimal, current: str) -> bool:
    try:
        return requested == Decimal(current)
    except InvalidOperation:
        return False


class InvoiceService:
    def __init__(
        self,
        *,
        repository: InvoiceRepository,
        object_store: ObjectStore,
        clock: Clock,
        config: ShipdeskConfig,
    ) -> None:
        self.repository = repository
        self.object_store = object_store
        self.clock = clock
        self.config = config

    async def list_invoices(
        self,
        *,
        status: str | None = None,
        customer_id: str | None = None,
        shipment_id: str | None = None,
        issued_from: date | None = None,
        due_until: date | None = None,
    ) -> list[InvoiceOut]:
        records = await self.repository.search(
            status=status,
            customer_id=customer_id,
            shipment_id=shipment_id,
            issued_from=issued_from,
            due_until=due_until,
        )
        return [InvoiceOut.from_record(record) for record in records]

    async def get_invoice(self, invoice_id: str) -> InvoiceOut:
        record = await self.repository.get(invoice_id)
        if record is None:
            raise InvoiceNotFoundError(invoice_id)
        return InvoiceOut.from_record(record)

    def _check_document(self, document: UploadedDocument) -> str:
        content_type = document.content_type.split(";")[0].strip().lower()
        if content_type not in self.config.invoice_allowed_content_types:
            raise UnsupportedMediaType(
                "Invalid file type. Only PDF, PNG, and JPG files are allowed."
            )
        if len(document.data) > self.config.invoice_max_file_size:
            limit_mb = self.config.invoice_max_file_size // (1024 * 1024)
            raise ValidationFailed(f"File size exceeds {limit_mb}MB limit.")
        return content_type

    async def create_invoice(
        self,
        *,
        session_user: SessionUser | None,
        fields: dict[str, Any],
        document: UploadedDocument | None = None,
    ) -> InvoiceOut:
        if session_user is None:
            raise Unauthorized()

        try:
            data = InvoiceCreate.model_validate(fields)
        except ValidationError as exc:
            raise ValidationFailed(
                "Missing required fields", details=field_errors(exc)
            ) from exc

        content_type = None
        if document is not None:
            content_type = self._check_document(document)

        if await self.repository.get_by_number(data.invoice_number) is not None:
            raise BusinessRuleViolation("Invoice number already exists")
        if not await self.repository.customer_exists(data.customer_id):
            raise NotFound("Customer not found")
        if data.shipment_id and not await self.repository.shipment_exists(
            data.shipment_id
        ):
            raise ShipmentNotFoundError(data.shipment_id)

        saga = Saga(f"create invoice {data.invoice_number}")
        file_key = None
        if document is not None and content_type is not None:
            file_key = invoice_file_key(content_type)
            try:
                await saga.run(
                    SagaStep(
                        "upload document",
                        action=lambda: self.object_store.put(
                            file_key, document.data, content_type
                        ),
                        compensation=lambda: self.object_store.delete(file_key),
                    )
                )
            except Exception as exc:
                logger.error(
                    "Upload failed for invoice %s: %s", data.invoice_number, exc
                )
                raise StorageFailed(details=str(exc)) from exc

        now = self.clock.now()
        values = {
            "id": str(uuid.uuid4()),
            "invoice_number": data.invoice_number,
            "customer_id": data.customer_id,
            "shipment_id": data.shipment_id,
            "amount": str(data.amount),
            "status": data.status.value,
            "document_path": file_key,
            "entry_type": data.entry_type.value,
            "issue_date": data.issue_date,
            "due_date": data.due_date,
            "created_by": session_user.id,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        try:
            await self.repository.create(values)
        except Exception as exc:
            logger.error(
                "Error creating invoice %s: %s", data.invoice_number, exc
            )
            await saga.compensate()
            raise ShipdeskError(
                "Failed to create invoice", details=str(exc)
            ) from exc

        logger.info("Created invoice %s", data.invoice_number)
        return await self.get_invoice(values["id"])

    async def update_invoice(
        self,
        *,
        session_user: SessionUser | None,
        invoice_id: str,
        body: Any,
    ) -> InvoiceOut:
        """Update number, amount, status and document path.

        System-generated invoices reject any change of number or amount.
        """
        if session_user is None:
            raise Unauthorized()

        record = await self.repository.get(invoice_id)
        if record is None:
            raise InvoiceNotFoundError(invoice_id)
        existing = record.invoice

        try:
            data = InvoiceUpdate.model_validate(body)
        except ValidationError as exc:
            raise ValidationFailed(details=field_errors(exc)) from exc

        if existing.entry_type == EntryType.SYSTEM_GENERATED:
            if (
                data.invoice_number
                and data.invoice_number != existing.invoice_number
            ):
                raise BusinessRuleViolation(
                    "Cannot modify invoice number for system-generated invoices"
                )
            if data.amount is not None and not _same_amount(
                data.amount, existing.amount
            ):
                raise BusinessRuleViolation(
                    "Cannot modify amount for system-generated invoices"
                )

        values: dict[str, Any] = {"updated_at": self.clock.now()}
        if existing.entry_type != EntryType.SYSTEM_GENERATED:
            if data.invoice_number:
                values["invoice_number"] = data.invoice_number
            if data.amount is not None:
                values["amount"] = str(data.amount)
        if data.status is not None:
            values["status"] = data.status.value
        if "document_path" in data.model_fields_set:
            values["document_path"] = data.document_path

        updated = await self.repository.update(invoice_id, values)
        if updated is None:
            raise InvoiceNotFoundError(invoice_id)
        return await self.get_invoice(invoice_id)

    async def archive_invoice(
        self,
        *,
        session_user: SessionUser | None,
        invoice_id: str,
    ) -> InvoiceArchived:
        if session_user is None:
            raise Unauthorized()

        record = await self.repository.get(invoice_id)
        if record is None:
            raise InvoiceNotFoundError(invoice_id)

        archived = await self.repository.soft_delete(invoice_id, self.clock.now())
        if archived is None:
            raise InvoiceNotFoundError(invoice_id)
        return InvoiceArchived(
            message="Invoice archived successfully",
            invoice=InvoiceOut.from_record(replace(record, invoice=archived)),
        )

    async def get_document(self, invoice_id: str) -> DocumentDownload:
        record = await self.repository.get(invoice_id)
        if record is None:
            raise InvoiceNotFoundError(invoice_id)
        invoice = record.invoice
        if not invoice.document_path:
            raise NotFound("No document attached")

        stored = await self.object_store.get(invoice.document_path)
        if stored is None:
            raise FileNotFoundInStorage()

        filename = invoice.document_path.rsplit("/", 1)[-1] or "download"
        return DocumentDownload(
            filename=f"{invoice.invoice_number}-{filename}",
            content_type=stored.content_type or "application/octet-stream",
            data=stored.data,
        )
