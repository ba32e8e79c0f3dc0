"""Invoice Aggregation Service"""

from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Hashable, Iterable, Iterator, Mapping, Optional, Set, Tuple, Union

from billing_core.core.exceptions import ValidationError
from billing_core.core.logging import get_logger
from billing_core.schemas.invoice import (
    AmountDiscount,
    BillableItem,
    CreatedInvoice,
    CreateInvoiceFromLinesRequest,
    InvoiceDraft,
    InvoiceLineInput,
    InvoiceTotals,
    PercentDiscount,
)
from billing_core.utils.money import HUNDRED, ZERO, percent_of, round_money

logger = get_logger(__name__)

ItemSnapshot = Union[Mapping[int, BillableItem], Iterable[BillableItem]]


class SubmissionGuard:
    """
    Pending flags for invoice submissions, one per draft.

    A draft is identified by its set of delivery line ids, so the same lines
    cannot be submitted twice while the first submission is in flight, while
    unrelated drafts go through independently.
    """

    def __init__(self) -> None:
        self._pending: Set[Hashable] = set()

    @property
    def pending(self) -> bool:
        return bool(self._pending)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[Hashable]:
        if key in self._pending:
            raise ValidationError(
                "This invoice is already being submitted.",
                code="SUBMISSION_PENDING",
            )
        self._pending.add(key)
        try:
            yield key
        finally:
            self._pending.discard(key)


class InvoiceService:
    @staticmethod
    def _index(items: ItemSnapshot) -> Dict[int, BillableItem]:
        if isinstance(items, Mapping):
            return dict(items)
        return {item.delivery_line_id: item for item in items if item.delivery_line_id}

    @staticmethod
    def _check_percent(value: Decimal, what: str) -> None:
        if value < ZERO or value > HUNDRED:
            raise ValidationError(f"{what} must be between 0 and 100, got {value}.")

    @staticmethod
    def validate_draft(draft: InvoiceDraft) -> None:
        """Range checks the totals depend on. Raises ValidationError."""
        for line in draft.lines:
            if line.discount_percent is not None:
                InvoiceService._check_percent(
                    line.discount_percent,
                    f"Discount for delivery line {line.delivery_line_id}",
                )
        if isinstance(draft.discount, PercentDiscount):
            InvoiceService._check_percent(draft.discount.value, "Order discount percent")
        elif isinstance(draft.discount, AmountDiscount) and draft.discount.value < ZERO:
            raise ValidationError("Order discount amount cannot be negative.")
        if draft.tax_rate < ZERO or draft.tax_rate > 1:
            raise ValidationError(f"Tax rate must be a fraction between 0 and 1, got {draft.tax_rate}.")

    @staticmethod
    def compute_totals(draft: InvoiceDraft, items: ItemSnapshot) -> InvoiceTotals:
        """
        Derive invoice totals from a draft and the billable item snapshot.

        Pure and deterministic. Lines are visited in selection order:
        line gross -> line discount -> subtotal -> order discount -> tax.
        Arithmetic is exact; subtotal, discount and tax are each rounded
        half-up once, and the remaining figures are sums of those, so
        ``grand_total == total_after_discount + tax_value`` exactly.

        Args:
            draft: Draft invoice
            items: Billable items, as a list or keyed by delivery line id

        Returns:
            InvoiceTotals

        Raises:
            ValidationError: If a discount or the tax rate is out of range
        """
        InvoiceService.validate_draft(draft)
        by_id = InvoiceService._index(items)

        sub_total = ZERO
        for line in draft.lines:
            item = by_id.get(line.delivery_line_id)
            if item is None or not item.unit_price:
                # Not loaded yet
                continue
            line_gross = item.unit_price * (line.invoice_qty or 1)
            line_discount = (
                percent_of(line_gross, line.discount_percent) if line.discount_percent else ZERO
            )
            sub_total += line_gross - line_discount
        sub_total = round_money(sub_total)

        discount = draft.discount
        if isinstance(discount, PercentDiscount) and discount.value:
            discount_value = round_money(percent_of(sub_total, discount.value))
        elif isinstance(discount, AmountDiscount) and discount.value:
            discount_value = round_money(discount.value)
        else:
            discount_value = round_money(ZERO)

        # Not clamped: a discount above the subtotal shows up as a negative total
        total_after_discount = sub_total - discount_value
        if draft.tax_rate > ZERO:
            tax_value = round_money(total_after_discount * draft.tax_rate)
        else:
            tax_value = round_money(ZERO)
        grand_total = total_after_discount + tax_value

        return InvoiceTotals(
            sub_total=sub_total,
            discount_value=discount_value,
            total_after_discount=total_after_discount,
            tax_value=tax_value,
            grand_total=grand_total,
        )

    @staticmethod
    def build_request(draft: InvoiceDraft) -> CreateInvoiceFromLinesRequest:
        """
        Normalize a draft into the backend request body.

        Empty optional strings become None; zero discounts are sent as None.
        """
        if not draft.lines:
            raise ValidationError(
                "Select at least one delivery line to create an invoice.",
                code="EMPTY_SELECTION",
            )
        InvoiceService.validate_draft(draft)

        def blank_to_none(value: Optional[str]) -> Optional[str]:
            if value is None:
                return None
            value = value.strip()
            return value or None

        buyer = draft.buyer
        return CreateInvoiceFromLinesRequest(
            lines=[
                InvoiceLineInput(
                    delivery_line_id=line.delivery_line_id,
                    invoice_qty=line.invoice_qty,
                    discount_percent=line.discount_percent,
                )
                for line in draft.lines
            ],
            discount_percent=draft.discount_percent or None,
            discount_amount=draft.discount_amount or None,
            discount_reason=blank_to_none(draft.discount_reason),
            tax_rate=draft.tax_rate,
            notes=blank_to_none(draft.notes),
            buyer_name=blank_to_none(buyer.name),
            buyer_company_name=blank_to_none(buyer.company_name),
            buyer_tax_code=blank_to_none(buyer.tax_code),
            buyer_address=blank_to_none(buyer.address),
            buyer_email=blank_to_none(buyer.email),
        )

    @staticmethod
    def submission_key(draft: InvoiceDraft) -> Tuple[int, ...]:
        """Identity of a draft for the pending check: its delivery line ids."""
        return tuple(sorted({line.delivery_line_id for line in draft.lines}))

    @staticmethod
    async def submit(draft: InvoiceDraft, client, guard: Optional[SubmissionGuard] = None) -> CreatedInvoice:
        """
        Validate a draft and hand it to the backend for creation.

        Validation happens before any network call. Backend failures are
        re-raised as received; nothing is retried. A draft whose lines are
        already being submitted through ``guard`` is refused with
        ``SUBMISSION_PENDING``.
        """
        request = InvoiceService.build_request(draft)
        guard = guard or SubmissionGuard()
        with guard.hold(InvoiceService.submission_key(draft)):
            logger.info(
                "Submitting invoice from delivery lines",
                extra={"line_count": len(request.lines)},
            )
            created = await client.create_invoice_from_lines(request)
        logger.info("Invoice created", extra={"invoice_id": created.id})
        return created
