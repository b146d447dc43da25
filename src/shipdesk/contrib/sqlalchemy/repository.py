"""SQLAlchemy repository implementations.

Session factories must be created with ``expire_on_commit=False``: the
returned models are read after their session has closed.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shipdesk.contrib.sqlalchemy.models import (
    CustomerModel,
    InvoiceModel,
    ShipmentDetailModel,
    ShipmentHeaderModel,
    UserModel,
)
from shipdesk.exceptions import IntegrityConflict
from shipdesk.protocols import (
    InvoiceRecord,
    PublicShipmentRecord,
    ShipmentListRecord,
)
from shipdesk.schemas import ShipmentStatus


class SQLAlchemyShipmentRepository:
    """Shipment repository backed by SQLAlchemy async sessions."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def create_with_details(
        self,
        header: dict[str, Any],
        details: list[dict[str, Any]],
    ) -> tuple[ShipmentHeaderModel, list[ShipmentDetailModel]]:
        """Insert the header and all details in a single transaction."""
        header_model = ShipmentHeaderModel(**header)
        detail_models = [ShipmentDetailModel(**detail) for detail in details]
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    session.add(header_model)
                    # Flush the header first so detail FKs resolve.
                    await session.flush()
                    session.add_all(detail_models)
            except IntegrityError as e:
                raise IntegrityConflict(details=str(e.orig)) from e
        return header_model, detail_models

    async def list_with_creator(self) -> list[ShipmentListRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ShipmentHeaderModel, UserModel.name)
                .outerjoin(
                    UserModel, ShipmentHeaderModel.created_by == UserModel.id
                )
                .order_by(ShipmentHeaderModel.created_at.desc())
            )
            return [
                ShipmentListRecord(header=header, created_by_name=name)
                for header, name in result.all()
            ]

    async def get(self, shipment_id: str) -> ShipmentHeaderModel | None:
        async with self.session_factory() as session:
            return await session.get(ShipmentHeaderModel, shipment_id)

    async def get_details(
        self, shipment_id: str
    ) -> list[ShipmentDetailModel]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ShipmentDetailModel)
                .where(ShipmentDetailModel.shipment_header_id == shipment_id)
                .order_by(
                    ShipmentDetailModel.line_number,
                    ShipmentDetailModel.created_at,
                )
            )
            return list(result.scalars().all())

    async def get_by_token(self, token: str) -> PublicShipmentRecord | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ShipmentHeaderModel, CustomerModel.name)
                .outerjoin(
                    CustomerModel,
                    ShipmentHeaderModel.customer_id == CustomerModel.id,
                )
                .where(ShipmentHeaderModel.public_token == token)
            )
            row = result.first()
            if row is None:
                return None
            header, customer_name = row
            return PublicShipmentRecord(
                header=header, customer_name=customer_name
            )

    async def update(
        self,
        shipment_id: str,
        *,
        status: str,
        details: list[dict[str, Any]] | None,
        updated_at: datetime,
    ) -> ShipmentHeaderModel | None:
        """Set the status and optionally replace the detail set atomically."""
        async with self.session_factory() as session:
            async with session.begin():
                header = await session.get(ShipmentHeaderModel, shipment_id)
                if header is None:
                    return None
                header.status = status
                header.updated_at = updated_at
                if details is not None:
                    await session.execute(
                        delete(ShipmentDetailModel).where(
                            ShipmentDetailModel.shipment_header_id
                            == shipment_id
                        )
                    )
                    session.add_all(
                        ShipmentDetailModel(**detail) for detail in details
                    )
            return header

    async def delete_with_details(
        self, shipment_id: str
    ) -> ShipmentHeaderModel | None:
        """Delete details then header in one transaction."""
        async with self.session_factory() as session:
            async with session.begin():
                header = await session.get(ShipmentHeaderModel, shipment_id)
                if header is None:
                    return None
                await session.execute(
                    delete(ShipmentDetailModel).where(
                        ShipmentDetailModel.shipment_header_id == shipment_id
                    )
                )
                await session.delete(header)
            return header

    async def confirm_delivery(
        self,
        shipment_id: str,
        *,
        delivery_comments: str | None,
        corrections: list[tuple[str, int]],
        updated_at: datetime,
    ) -> None:
        """Mark delivered and apply quantity corrections in one transaction.

        Corrections whose id is not a detail of this shipment match no row
        and are skipped.
        """
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(ShipmentHeaderModel)
                    .where(ShipmentHeaderModel.id == shipment_id)
                    .values(
                        delivery_comments=delivery_comments,
                        status=ShipmentStatus.DELIVERED.value,
                        updated_at=updated_at,
                    )
                )
                for detail_id, qty_delivered in corrections:
                    await session.execute(
                        update(ShipmentDetailModel)
                        .where(
                            ShipmentDetailModel.id == detail_id,
                            ShipmentDetailModel.shipment_header_id
                            == shipment_id,
                        )
                        .values(
                            qty_delivered=qty_delivered,
                            updated_at=updated_at,
                        )
                    )


class SQLAlchemyInvoiceRepository:
    """Invoice repository backed by SQLAlchemy async sessions."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    @staticmethod
    def _joined():
        return (
            select(
                InvoiceModel,
                CustomerModel.name,
                ShipmentHeaderModel.shipment_number,
                UserModel.name,
            )
            .outerjoin(CustomerModel, InvoiceModel.customer_id == CustomerModel.id)
            .outerjoin(
                ShipmentHeaderModel,
                InvoiceModel.shipment_id == ShipmentHeaderModel.id,
            )
            .outerjoin(UserModel, InvoiceModel.created_by == UserModel.id)
            .where(InvoiceModel.deleted_at.is_(None))
        )

    @staticmethod
    def _record(row: Any) -> InvoiceRecord:
        invoice, customer_name, shipment_number, created_by_name = row
        return InvoiceRecord(
            invoice=invoice,
            customer_name=customer_name,
            shipment_number=shipment_number,
            created_by_name=created_by_name,
        )

    async def search(
        self,
        *,
        status: str | None = None,
        customer_id: str | None = None,
        shipment_id: str | None = None,
        issued_from: date | None = None,
        due_until: date | None = None,
    ) -> list[InvoiceRecord]:
        stmt = self._joined()
        if status:
            stmt = stmt.where(InvoiceModel.status == status)
        if customer_id:
            stmt = stmt.where(InvoiceModel.customer_id == customer_id)
        if shipment_id:
            stmt = stmt.where(InvoiceModel.shipment_id == shipment_id)
        if issued_from:
            stmt = stmt.where(InvoiceModel.issue_date >= issued_from)
        if due_until:
            stmt = stmt.where(InvoiceModel.due_date <= due_until)
        stmt = stmt.order_by(InvoiceModel.created_at.desc())

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [self._record(row) for row in result.all()]

    async def get(self, invoice_id: str) -> InvoiceRecord | None:
        async with self.session_factory() as session:
            result = await session.execute(
                self._joined().where(InvoiceModel.id == invoice_id)
            )
            row = result.first()
            return self._record(row) if row is not None else None

    async def get_by_number(self, invoice_number: str) -> InvoiceModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(InvoiceModel).where(
                    InvoiceModel.invoice_number == invoice_number
                )
            )
            return result.scalar_one_or_none()

    async def customer_exists(self, customer_id: str) -> bool:
        async with self.session_factory() as session:
            return await session.get(CustomerModel, customer_id) is not None

    async def shipment_exists(self, shipment_id: str) -> bool:
        async with self.session_factory() as session:
            return (
                await session.get(ShipmentHeaderModel, shipment_id) is not None
            )

    async def create(self, values: dict[str, Any]) -> InvoiceModel:
        invoice = InvoiceModel(**values)
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    session.add(invoice)
            except IntegrityError as e:
                raise IntegrityConflict(details=str(e.orig)) from e
        return invoice

    async def update(
        self, invoice_id: str, values: dict[str, Any]
    ) -> InvoiceModel | None:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    invoice = await session.get(InvoiceModel, invoice_id)
                    if invoice is None or invoice.deleted_at is not None:
                        return None
                    for key, value in values.items():
                        setattr(invoice, key, value)
                return invoice
            except IntegrityError as e:
                raise IntegrityConflict(details=str(e.orig)) from e

    async def soft_delete(
        self, invoice_id: str, deleted_at: datetime
    ) -> InvoiceModel | None:
        return await self.update(
            invoice_id, {"deleted_at": deleted_at, "updated_at": deleted_at}
        )
