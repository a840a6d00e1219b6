"""Contract router - view and sign the service agreement of an order"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_client
from ...database import get_db
from ...models import User
from ...shared.enums import WebhookEvent
from ..orders.router import order_event_payload
from ..orders.schemas import OrderResponse
from ..orders.service import OrderService
from ..webhooks.dispatcher import notify
from .schemas import ContractResponse, ContractSignRequest
from .service import ContractService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Contracts"])


def get_contract_service(db: Session = Depends(get_db)) -> ContractService:
    """Dependency injection for ContractService"""
    return ContractService(db)


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


@router.get("/{order_id}/contract", response_model=ContractResponse)
async def get_contract(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    """Get the agreement text and signature status of an order"""
    return ContractResponse.from_model(service.get_contract(order_id, current_user))


@router.post("/{order_id}/contract/sign", response_model=OrderResponse)
async def sign_contract(
    order_id: int,
    data: ContractSignRequest,
    request: Request,
    current_user: User = Depends(require_client),
    service: ContractService = Depends(get_contract_service),
):
    """Sign the agreement; the order is activated and invoiced on success"""
    order = service.sign_contract(order_id, data, current_user, ip_address=get_client_ip(request))

    payload = order_event_payload(order)
    await notify(WebhookEvent.CONTRACT_SIGNED.value, {**payload, "signedByName": data.fullName})
    await notify(WebhookEvent.ORDER_COMPLETED.value, payload)

    return OrderResponse.from_model(order, refunded_amount=OrderService.refunded_amount(order))
