"""Public delivery verification reached through a shipment's token."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from shipdesk.exceptions import (
    ConfirmationFailed,
    InvalidTokenError,
    LinkExpired,
    ValidationFailed,
)
from shipdesk.protocols import Clock, PublicShipmentRecord, ShipmentRepository
from shipdesk.schemas import (
    ConfirmDeliveryRequest,
    ProcessedShipmentView,
    PublicShipmentDetail,
    PublicShipmentView,
    ShipmentStatus,
    field_errors,
)

logger = logging.getLogger(__name__)


class DeliveryVerificationFlow:
    """``On Going --confirm--> Delivered``, gated by ``is_link_active``."""

    def __init__(
        self,
        *,
        repository: ShipmentRepository,
        clock: Clock,
    ) -> None:
        self.repository = repository
        self.clock = clock

    async def _resolve(self, token: str) -> PublicShipmentRecord:
        record = await self.repository.get_by_token(token)
        if record is None:
            raise InvalidTokenError()
        if not record.header.is_link_active:
            raise LinkExpired()
        return record

    async def get_by_token(
        self, token: str
    ) -> PublicShipmentView | ProcessedShipmentView:
        record = await self._resolve(token)
        header = record.header

        if header.status == ShipmentStatus.DELIVERED:
            return ProcessedShipmentView(
                shipment_number=header.shipment_number,
                status=ShipmentStatus.DELIVERED,
            )

        details = await self.repository.get_details(header.id)
        return PublicShipmentView(
            shipment_number=header.shipment_number,
            status=header.status,
            delivery_comments=header.delivery_comments,
            created_at=header.created_at,
            customer_name=record.customer_name,
            is_link_active=header.is_link_active,
            details=[PublicShipmentDetail.model_validate(d) for d in details],
        )

    async def confirm(self, token: str, body: Any) -> None:
        """Mark the shipment delivered and record delivered quantities.

        Corrections without both an id and a quantity are ignored, as are
        ids that do not belong to this shipment.
        """
        record = await self._resolve(token)
        header = record.header

        try:
            request = ConfirmDeliveryRequest.model_validate(body)
        except ValidationError as exc:
            raise ValidationFailed(
                "Invalid details format", details=field_errors(exc)
            ) from exc

        corrections = [
            (correction.id, correction.qty_delivered)
            for correction in request.details
            if correction.id is not None and correction.qty_delivered is not None
        ]

        try:
            await self.repository.confirm_delivery(
                header.id,
                delivery_comments=request.delivery_comments,
                corrections=corrections,
                updated_at=self.clock.now(),
            )
        except Exception as exc:
            logger.exception(
                "Error confirming shipment %s", header.shipment_number
            )
            raise ConfirmationFailed(details=str(exc)) from exc

        logger.info(
            "Shipment %s confirmed delivered with %d correction(s)",
            header.shipment_number,
            len(corrections),
        )
