"""Token-gated delivery verification endpoints."""

from __future__ import annotations

from json import JSONDecodeError
from typing import Any

from fastapi import APIRouter, Depends, Request

from shipdesk.dependencies import get_verification_flow
from shipdesk.schemas import ConfirmDeliveryResponse

router = APIRouter()


@router.get("/public/shipments/{token}")
async def get_public_shipment(
    token: str,
    flow=Depends(get_verification_flow),
) -> dict[str, Any]:
    """Return the verification view, or the reduced view once delivered."""
    view = await flow.get_by_token(token)
    return view.model_dump(by_alias=True, mode="json")


@router.post(
    "/public/shipments/{token}/confirm",
    response_model=ConfirmDeliveryResponse,
)
async def confirm_public_shipment(
    token: str,
    request: Request,
    flow=Depends(get_verification_flow),
) -> ConfirmDeliveryResponse:
    # Parsed by hand so a bad token wins over a bad body.
    try:
        body = await request.json()
    except JSONDecodeError:
        body = {}
    await flow.confirm(token, body)
    return ConfirmDeliveryResponse()
