"""Payment Reconciliation Service"""

from decimal import Decimal
from typing import Any, Optional

from billing_core.core.exceptions import ValidationError
from billing_core.core.logging import get_logger
from billing_core.models.enums import PaymentKind
from billing_core.schemas.payment import (
    OrderPaymentRequest,
    PaymentResult,
    RecordedPayment,
    RecordPaymentRequest,
)
from billing_core.utils.money import ZERO, to_decimal

logger = get_logger(__name__)


class PaymentReconciler:
    """
    Applies a full or partial payment against an outstanding balance.

    ``remaining_amount = total_amount - deposit_amount``. Zero is a valid
    (fully paid) state that accepts no further payment; a negative balance
    means the snapshot is corrupt and is rejected outright.
    """

    def __init__(self, total_amount: Any, deposit_amount: Any = ZERO) -> None:
        self.total_amount = to_decimal(total_amount)
        self.deposit_amount = to_decimal(deposit_amount)
        self.remaining_amount = self.total_amount - self.deposit_amount
        if self.remaining_amount < ZERO:
            raise ValidationError(
                f"Paid amount {self.deposit_amount} exceeds total {self.total_amount}; "
                "the balance snapshot is inconsistent.",
                code="CORRUPT_BALANCE",
            )

    def effective_amount(self, kind: PaymentKind, amount: Any = None) -> Decimal:
        if PaymentKind(kind) == PaymentKind.FULL:
            return self.remaining_amount
        return to_decimal(amount)

    def is_valid(self, kind: PaymentKind, amount: Any = None) -> bool:
        """Full: something is owed. Partial: 0 < amount <= remaining."""
        if PaymentKind(kind) == PaymentKind.FULL:
            return self.remaining_amount > ZERO
        value = to_decimal(amount)
        return ZERO < value <= self.remaining_amount

    def apply(self, kind: PaymentKind, amount: Any = None) -> PaymentResult:
        """
        Compute the balance after a payment. Performs no I/O.

        Raises:
            ValidationError: If the payment is not valid for this balance
        """
        kind = PaymentKind(kind)
        if not self.is_valid(kind, amount):
            if self.remaining_amount == ZERO:
                message = "Nothing is outstanding; no payment can be applied."
            elif kind == PaymentKind.PARTIAL and to_decimal(amount) > self.remaining_amount:
                message = f"Payment exceeds the remaining balance of {self.remaining_amount}."
            else:
                message = "Payment amount must be greater than zero."
            raise ValidationError(message, code="INVALID_PAYMENT")

        paid = self.effective_amount(kind, amount)
        return PaymentResult(
            kind=kind,
            amount=paid,
            previous_balance=self.remaining_amount,
            new_balance=self.remaining_amount - paid,
        )


class PaymentService:
    @staticmethod
    def preview(request: OrderPaymentRequest) -> PaymentResult:
        reconciler = PaymentReconciler(request.total_amount, request.deposit_amount)
        return reconciler.apply(request.kind, request.amount)

    @staticmethod
    async def record_payment(
        order_id: int,
        request: OrderPaymentRequest,
        client,
        note: Optional[str] = None,
    ) -> RecordedPayment:
        """
        Validate a payment locally, then record it with the backend.

        Raises:
            ValidationError: Invalid amount (no network call is made)
            CollaboratorError: Backend failure, as reported
        """
        result = PaymentService.preview(request)
        body = RecordPaymentRequest(
            order_id=order_id,
            amount=result.amount,
            note=note if note is not None else request.note,
        )
        logger.info(
            "Recording payment",
            extra={"order_id": order_id, "kind": result.kind.value},
        )
        backend = await client.record_payment(body)
        return RecordedPayment(
            order_id=order_id,
            amount=result.amount,
            new_balance=result.new_balance,
            backend=backend if isinstance(backend, dict) else None,
        )
