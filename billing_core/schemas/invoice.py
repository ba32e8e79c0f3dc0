from typing import Annotated, Any, List, Literal, Optional, Tuple, Union
from datetime import datetime
from decimal import Decimal
from pydantic import ConfigDict, Field, model_validator

from billing_core.config import settings
from billing_core.schemas.common import CamelModel, FrozenCamelModel, Money
from billing_core.utils.money import to_decimal


class BillableItem(FrozenCamelModel):
    """A fulfilled delivery line that can still be invoiced (read-only snapshot)."""
    delivery_line_id: Optional[int] = None
    delivery_note_id: Optional[int] = None
    delivery_note_code: Optional[str] = None
    order_detail_id: Optional[int] = None
    order_id: Optional[int] = None
    order_code: Optional[str] = None
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_tax_code: Optional[str] = None
    customer_company_name: Optional[str] = None
    design_id: Optional[int] = None
    design_code: Optional[str] = None
    design_name: Optional[str] = None
    delivered_qty: int = 0
    invoiced_qty: int = 0
    remaining_to_invoice: int = Field(0, ge=0)
    unit_price: Optional[Money] = None
    delivered_at: Optional[datetime] = None


class LineSelection(FrozenCamelModel):
    """One selected line of a draft invoice. Replaced, never mutated."""
    delivery_line_id: int
    invoice_qty: int = Field(1, ge=1)
    # Stored as entered; the aggregation engine range-checks it
    discount_percent: Optional[Money] = None


class NoDiscount(FrozenCamelModel):
    kind: Literal["none"] = "none"


class PercentDiscount(FrozenCamelModel):
    kind: Literal["percent"] = "percent"
    value: Money


class AmountDiscount(FrozenCamelModel):
    kind: Literal["amount"] = "amount"
    value: Money


OrderDiscount = Annotated[
    Union[NoDiscount, PercentDiscount, AmountDiscount],
    Field(discriminator="kind"),
]


class BuyerInfo(FrozenCamelModel):
    name: Optional[str] = None
    company_name: Optional[str] = None
    tax_code: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None


class InvoiceDraft(FrozenCamelModel):
    """
    Everything needed to preview or submit an invoice built from delivery lines.

    The order-level discount is a tagged union, so a percent and a fixed
    amount can never both be active. Payloads in the flat request shape
    (``discountPercent`` / ``discountAmount``) are folded into it on input,
    with a non-zero percent taking precedence.
    """
    lines: Tuple[LineSelection, ...] = ()
    discount: OrderDiscount = NoDiscount()
    discount_reason: Optional[str] = None
    tax_rate: Money = Field(default_factory=lambda: settings.DEFAULT_TAX_RATE)
    notes: Optional[str] = None
    buyer: BuyerInfo = BuyerInfo()

    @model_validator(mode="before")
    @classmethod
    def fold_flat_discount(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "taxRate" in data or "tax_rate" in data:
            raw = _pop_either(data, "taxRate", "tax_rate")
            # A blank tax rate means "no tax", not "use the default"
            data["tax_rate"] = to_decimal(raw)
        if "discount" in data:
            return data
        percent = to_decimal(_pop_either(data, "discountPercent", "discount_percent"))
        amount = to_decimal(_pop_either(data, "discountAmount", "discount_amount"))
        if percent:
            data["discount"] = {"kind": "percent", "value": percent}
        elif amount:
            data["discount"] = {"kind": "amount", "value": amount}
        return data

    @property
    def discount_percent(self) -> Optional[Decimal]:
        return self.discount.value if isinstance(self.discount, PercentDiscount) else None

    @property
    def discount_amount(self) -> Optional[Decimal]:
        return self.discount.value if isinstance(self.discount, AmountDiscount) else None

    def with_discount_percent(self, value: Any) -> "InvoiceDraft":
        """Set the order discount as a percentage; clears any fixed amount."""
        if value is None:
            return self.without_discount()
        return self.model_copy(update={"discount": PercentDiscount(value=to_decimal(value))})

    def with_discount_amount(self, value: Any) -> "InvoiceDraft":
        """Set the order discount as a fixed amount; clears any percentage."""
        if value is None:
            return self.without_discount()
        return self.model_copy(update={"discount": AmountDiscount(value=to_decimal(value))})

    def without_discount(self) -> "InvoiceDraft":
        return self.model_copy(update={"discount": NoDiscount()})

    def with_lines(self, lines) -> "InvoiceDraft":
        return self.model_copy(update={"lines": tuple(lines)})


def _pop_either(data: dict, *keys: str) -> Any:
    value = None
    for key in keys:
        if key in data:
            popped = data.pop(key)
            if value is None:
                value = popped
    return value


class InvoiceTotals(FrozenCamelModel):
    sub_total: Money
    discount_value: Money
    total_after_discount: Money
    tax_value: Money
    grand_total: Money


class InvoiceLineInput(CamelModel):
    delivery_line_id: int
    invoice_qty: int = Field(..., ge=1, le=2147483647)
    discount_percent: Optional[Money] = Field(None, ge=0, le=100)


class CreateInvoiceFromLinesRequest(CamelModel):
    """Normalized body sent to the backend's invoice-from-lines endpoint"""
    lines: List[InvoiceLineInput] = Field(..., min_length=1)
    discount_percent: Optional[Money] = Field(None, ge=0, le=100)
    discount_amount: Optional[Money] = Field(None, ge=0)
    discount_reason: Optional[str] = Field(None, max_length=500)
    tax_rate: Optional[Money] = Field(None, ge=0, le=1)
    notes: Optional[str] = None
    buyer_name: Optional[str] = None
    buyer_company_name: Optional[str] = None
    buyer_tax_code: Optional[str] = None
    buyer_address: Optional[str] = None
    buyer_email: Optional[str] = None


class InvoicePreviewRequest(CamelModel):
    draft: InvoiceDraft
    items: List[BillableItem] = []


class InvoicePreview(CamelModel):
    totals: InvoiceTotals
    line_count: int
    can_submit: bool


class CreatedInvoice(CamelModel):
    """Backend reply to invoice creation; unknown fields are kept."""
    id: Optional[int] = None
    invoice_number: Optional[str] = None
    status: Optional[str] = None
    grand_total: Optional[Money] = None

    model_config = ConfigDict(extra="allow")
