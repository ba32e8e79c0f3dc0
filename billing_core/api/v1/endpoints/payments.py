from typing import Any
from fastapi import APIRouter, Depends

from billing_core.api import deps
from billing_core.schemas.payment import OrderPaymentRequest, PaymentResult, RecordedPayment
from billing_core.schemas.responses import SuccessResponse
from billing_core.services.backend_client import BackendClient
from billing_core.services.payment_service import PaymentService

router = APIRouter()


@router.post("/preview", response_model=SuccessResponse[PaymentResult])
async def preview_payment(body: OrderPaymentRequest) -> Any:
    """
    Check a payment against the balance and show the resulting balance.
    """
    return SuccessResponse(data=PaymentService.preview(body))


@router.post("/orders/{order_id}", response_model=SuccessResponse[RecordedPayment])
async def record_order_payment(
    order_id: int,
    body: OrderPaymentRequest,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    """
    Record a full or partial payment for an order.
    """
    recorded = await PaymentService.record_payment(order_id, body, client)
    return SuccessResponse(data=recorded, message="Payment recorded")
