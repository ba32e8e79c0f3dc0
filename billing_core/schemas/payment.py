from typing import Any, Optional
from pydantic import Field

from billing_core.models.enums import PaymentKind
from billing_core.schemas.common import CamelModel, FrozenCamelModel, Money


class PaymentRequest(CamelModel):
    kind: PaymentKind = PaymentKind.PARTIAL
    # Raw user input; unparsable values are treated as zero, never rejected here
    amount: Any = None
    note: Optional[str] = None


class OrderPaymentRequest(PaymentRequest):
    """A payment together with the balance snapshot it is checked against"""
    total_amount: Money
    deposit_amount: Money = Field(default=0)


class PaymentResult(FrozenCamelModel):
    kind: PaymentKind
    amount: Money
    previous_balance: Money
    new_balance: Money

    @property
    def settles_balance(self) -> bool:
        return self.new_balance == 0


class RecordPaymentRequest(CamelModel):
    """Body of the backend's confirm-payment call"""
    order_id: int
    amount: Money = Field(..., gt=0)
    note: Optional[str] = None


class RecordedPayment(CamelModel):
    order_id: int
    amount: Money
    new_balance: Money
    backend: Optional[dict] = None
