"""Request and response schemas.

JSON bodies use camelCase keys; every model also accepts the snake_case
field names.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Any, Generic, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from shipdesk.protocols import InvoiceRecord

T = TypeVar("T")

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveInt = Annotated[int, Field(strict=True, gt=0)]


class ShipmentStatus(StrEnum):
    ON_GOING = "On Going"
    DELIVERED = "Delivered"


class InvoiceStatus(StrEnum):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


class EntryType(StrEnum):
    MANUAL = "Manual"
    SYSTEM_GENERATED = "System_Generated"


DETAIL_DEFAULT_STATUS = "pending"


class Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Shipment input
# ---------------------------------------------------------------------------


class ShipmentHeaderIn(Schema):
    shipment_number: NonEmptyStr
    customer_id: NonEmptyStr
    status: NonEmptyStr
    created_by: str | None = None


class ShipmentDetailIn(Schema):
    item_code: NonEmptyStr
    item_description: str | None = None
    quantity: PositiveInt
    status: NonEmptyStr = DETAIL_DEFAULT_STATUS


class CreateShipmentPayload(Schema):
    header: ShipmentHeaderIn
    details: list[ShipmentDetailIn] = Field(min_length=1)


class ReplacementDetailIn(Schema):
    item_code: NonEmptyStr
    item_description: str | None = None
    quantity: PositiveInt


class UpdateShipmentRequest(Schema):
    status: NonEmptyStr
    details: list[ReplacementDetailIn] | None = None


# ---------------------------------------------------------------------------
# Shipment output
# ---------------------------------------------------------------------------


class ShipmentDetailOut(Schema):
    id: str
    shipment_header_id: str
    item_code: str
    item_description: str | None = None
    quantity: int
    qty_delivered: int | None = None
    status: str
    created_at: datetime
    updated_at: datetime


class ShipmentHeaderOut(Schema):
    id: str
    shipment_number: str
    customer_id: str
    original_file_key: str | None = None
    stamped_file_key: str | None = None
    status: str
    public_token: str | None = None
    is_link_active: bool = True
    delivery_comments: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class ShipmentWithDetails(ShipmentHeaderOut):
    details: list[ShipmentDetailOut] = Field(default_factory=list)

    @classmethod
    def from_models(cls, header: Any, details: list[Any]) -> ShipmentWithDetails:
        base = ShipmentHeaderOut.model_validate(header)
        return cls(
            **base.model_dump(),
            details=[ShipmentDetailOut.model_validate(d) for d in details],
        )


class ShipmentListItem(ShipmentHeaderOut):
    created_by_name: str | None = None


# ---------------------------------------------------------------------------
# Public verification
# ---------------------------------------------------------------------------


class PublicShipmentDetail(Schema):
    id: str
    item_code: str
    item_description: str | None = None
    quantity: int
    qty_delivered: int | None = None
    status: str


class PublicShipmentView(Schema):
    shipment_number: str
    status: str
    delivery_comments: str | None = None
    created_at: datetime
    customer_name: str | None = None
    is_link_active: bool = True
    details: list[PublicShipmentDetail] = Field(default_factory=list)


class ProcessedShipmentView(Schema):
    shipment_number: str
    status: str
    is_processed: bool = True


class DetailCorrection(Schema):
    id: str | None = None
    qty_delivered: Annotated[int, Field(strict=True, ge=0)] | None = None


class ConfirmDeliveryRequest(Schema):
    delivery_comments: str | None = None
    details: list[DetailCorrection]


class ConfirmDeliveryResponse(Schema):
    success: bool = True


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


def _amount_as_str(value: Decimal) -> str:
    if not value.is_finite():
        raise ValueError("Amount must be a finite number")
    return str(value)


class InvoiceCreate(Schema):
    invoice_number: NonEmptyStr
    customer_id: NonEmptyStr
    shipment_id: str | None = None
    amount: Decimal
    status: InvoiceStatus = InvoiceStatus.DRAFT
    entry_type: EntryType
    issue_date: date
    due_date: date

    @field_validator("shipment_id", mode="before")
    @classmethod
    def _blank_shipment_is_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, value: Decimal) -> Decimal:
        _amount_as_str(value)
        return value


class InvoiceUpdate(Schema):
    invoice_number: str | None = None
    amount: Decimal | None = None
    status: InvoiceStatus | None = None
    document_path: str | None = None


class InvoiceOut(Schema):
    id: str
    invoice_number: str
    customer_id: str
    customer_name: str | None = None
    shipment_id: str | None = None
    shipment_number: str | None = None
    amount: str
    status: str
    document_path: str | None = None
    entry_type: str
    issue_date: date
    due_date: date
    created_by: str | None = None
    created_by_name: str | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @classmethod
    def from_record(cls, record: InvoiceRecord) -> InvoiceOut:
        invoice = record.invoice
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            customer_name=record.customer_name,
            shipment_id=invoice.shipment_id,
            shipment_number=record.shipment_number,
            amount=invoice.amount,
            status=invoice.status,
            document_path=invoice.document_path,
            entry_type=invoice.entry_type,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            created_by=invoice.created_by,
            created_by_name=record.created_by_name,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
            deleted_at=invoice.deleted_at,
        )


class InvoiceArchived(Schema):
    message: str
    invoice: InvoiceOut


# ---------------------------------------------------------------------------
# Validation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    errors: list[dict[str, Any]]


def field_errors(exc: ValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors into ``{"loc": [...], "msg": ...}`` items."""
    return [
        {
            "loc": [str(part) for part in error["loc"]],
            "msg": error["msg"],
        }
        for error in exc.errors()
    ]


def validate_shipment_payload(
    header: Any, details: Any
) -> Ok[CreateShipmentPayload] | Err:
    """Validate header and details together, collecting every field error."""
    try:
        payload = CreateShipmentPayload.model_validate(
            {"header": header, "details": details}
        )
    except ValidationError as exc:
        return Err(field_errors(exc))
    return Ok(payload)
