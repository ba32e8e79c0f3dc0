"""Unit tests for InvoiceService totals and submission."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from billing_core.core.exceptions import CollaboratorError, ValidationError
from billing_core.schemas.invoice import (
    AmountDiscount,
    BillableItem,
    BuyerInfo,
    CreatedInvoice,
    InvoiceDraft,
    LineSelection,
    NoDiscount,
    PercentDiscount,
)
from billing_core.services.invoice_service import InvoiceService, SubmissionGuard
from billing_core.services.line_selector import LineSelector


def _draft_for(items, **fields) -> InvoiceDraft:
    selector = LineSelector(items)
    for item in items:
        selector.toggle(item)
    return selector.to_draft(**fields)


def test_totals_with_order_percent_discount_and_tax(billable_items):
    draft = _draft_for(billable_items, discount_percent=10, tax_rate=Decimal("0.1"))

    totals = InvoiceService.compute_totals(draft, billable_items)

    assert totals.sub_total == Decimal("1000000")
    assert totals.discount_value == Decimal("100000")
    assert totals.total_after_discount == Decimal("900000")
    assert totals.tax_value == Decimal("90000")
    assert totals.grand_total == Decimal("990000")


def test_line_discount_applies_before_subtotal(billable_items):
    selector = LineSelector(billable_items)
    selector.toggle(billable_items[0])
    selector.set_discount_percent(11, 20)
    draft = selector.to_draft(tax_rate=0)

    totals = InvoiceService.compute_totals(draft, billable_items)

    assert totals.sub_total == Decimal("400000")
    assert totals.tax_value == Decimal("0")
    assert totals.grand_total == Decimal("400000")


def test_fixed_amount_discount(billable_items):
    draft = _draft_for(billable_items, tax_rate=Decimal("0.08")).with_discount_amount(50000)

    totals = InvoiceService.compute_totals(draft, billable_items)

    assert totals.discount_value == Decimal("50000")
    assert totals.total_after_discount == Decimal("950000")
    assert totals.tax_value == Decimal("76000")
    assert totals.grand_total == Decimal("1026000")


def test_percent_wins_when_flat_request_carries_both(billable_items):
    draft = _draft_for(billable_items, discountPercent=10, discountAmount=999999, taxRate=0)

    assert isinstance(draft.discount, PercentDiscount)
    assert draft.discount_amount is None
    totals = InvoiceService.compute_totals(draft, billable_items)
    assert totals.discount_value == Decimal("100000")


def test_zero_percent_falls_through_to_amount(billable_items):
    draft = _draft_for(billable_items, discountPercent=0, discountAmount=1000, taxRate=0)
    assert isinstance(draft.discount, AmountDiscount)
    assert InvoiceService.compute_totals(draft, billable_items).discount_value == Decimal("1000")


def test_discount_larger_than_subtotal_gives_negative_total(billable_items):
    draft = _draft_for(billable_items, taxRate="0.1").with_discount_amount(1500000)

    totals = InvoiceService.compute_totals(draft, billable_items)

    assert totals.total_after_discount == Decimal("-500000")
    assert totals.tax_value == Decimal("-50000")
    assert totals.grand_total == Decimal("-550000")


def test_unresolved_lines_contribute_nothing(billable_items):
    draft = InvoiceDraft(
        lines=[
            LineSelection(delivery_line_id=11, invoice_qty=1),
            LineSelection(delivery_line_id=999, invoice_qty=4),
        ],
        tax_rate=0,
    )
    totals = InvoiceService.compute_totals(draft, billable_items)
    assert totals.sub_total == Decimal("100000")


def test_item_without_price_contributes_nothing():
    items = [BillableItem(delivery_line_id=1, remaining_to_invoice=2)]
    draft = InvoiceDraft(lines=[LineSelection(delivery_line_id=1, invoice_qty=2)])
    assert InvoiceService.compute_totals(draft, items).grand_total == Decimal("0")


def test_totals_accept_items_keyed_by_id(billable_items):
    draft = _draft_for(billable_items, tax_rate=0)
    keyed = {item.delivery_line_id: item for item in billable_items}
    assert InvoiceService.compute_totals(draft, keyed) == InvoiceService.compute_totals(draft, billable_items)


def test_compute_totals_is_deterministic(billable_items):
    selector = LineSelector(billable_items)
    for item in billable_items:
        selector.toggle(item)
    selector.set_discount_percent(11, Decimal("12.5"))
    draft = selector.to_draft(discount_percent=Decimal("3.3"), tax_rate=Decimal("0.1"))

    first = InvoiceService.compute_totals(draft, billable_items)
    second = InvoiceService.compute_totals(draft, billable_items)

    assert first == second
    assert first.grand_total == first.total_after_discount + first.tax_value


def test_rounding_is_half_up_on_discount_and_tax():
    items = [BillableItem(delivery_line_id=1, unit_price=Decimal("10.05"), remaining_to_invoice=1)]
    draft = InvoiceDraft(
        lines=[LineSelection(delivery_line_id=1, invoice_qty=1)],
        discount=PercentDiscount(value=Decimal("50")),
        tax_rate=Decimal("0.1"),
    )

    totals = InvoiceService.compute_totals(draft, items)

    # 10.05 * 50% = 5.025 -> 5.03; (10.05 - 5.03) * 0.1 = 0.502 -> 0.50
    assert totals.discount_value == Decimal("5.03")
    assert totals.total_after_discount == Decimal("5.02")
    assert totals.tax_value == Decimal("0.50")
    assert totals.grand_total == Decimal("5.52")


@pytest.mark.parametrize("bad", [Decimal("-1"), Decimal("100.01")])
def test_out_of_range_line_discount_is_rejected(billable_items, bad):
    selector = LineSelector(billable_items)
    selector.toggle(billable_items[0])
    selector.set_discount_percent(11, bad)
    with pytest.raises(ValidationError):
        InvoiceService.compute_totals(selector.to_draft(), billable_items)


def test_out_of_range_order_discount_and_tax_are_rejected(billable_items):
    base = _draft_for(billable_items)
    with pytest.raises(ValidationError):
        InvoiceService.compute_totals(base.with_discount_percent(101), billable_items)
    with pytest.raises(ValidationError):
        InvoiceService.compute_totals(base.with_discount_amount(-1), billable_items)
    with pytest.raises(ValidationError):
        InvoiceService.compute_totals(base.model_copy(update={"tax_rate": Decimal("1.5")}), billable_items)


def test_setting_one_discount_clears_the_other():
    draft = InvoiceDraft().with_discount_amount(5000)
    assert draft.discount_amount == Decimal("5000")

    draft = draft.with_discount_percent(10)
    assert draft.discount_percent == Decimal("10")
    assert draft.discount_amount is None

    draft = draft.with_discount_amount(2000)
    assert draft.discount_amount == Decimal("2000")
    assert draft.discount_percent is None

    draft = draft.with_discount_percent(None)
    assert isinstance(draft.discount, NoDiscount)


def test_default_tax_rate_is_ten_percent():
    assert InvoiceDraft().tax_rate == Decimal("0.1")


@pytest.mark.parametrize(
    "payload",
    [
        {"taxRate": "", "discountPercent": 10},
        {"taxRate": "", "discount": {"kind": "percent", "value": 10}},
        {"tax_rate": None, "discount": {"kind": "none"}},
    ],
)
def test_blank_tax_rate_means_no_tax(payload):
    draft = InvoiceDraft.model_validate(payload)
    assert draft.tax_rate == Decimal("0")


def test_build_request_normalizes_fields(billable_items):
    draft = _draft_for(
        billable_items,
        discount_reason="",
        notes="  ",
        buyer=BuyerInfo(name="Nguyen Van A", company_name="", email="a@inanphat.vn"),
    ).with_discount_percent(10)

    request = InvoiceService.build_request(draft)
    wire = request.to_wire()

    assert wire["lines"] == [
        {"deliveryLineId": 11, "invoiceQty": 5, "discountPercent": None},
        {"deliveryLineId": 12, "invoiceQty": 10, "discountPercent": None},
    ]
    assert wire["discountPercent"] == 10
    assert wire["discountAmount"] is None
    assert wire["discountReason"] is None
    assert wire["notes"] is None
    assert wire["taxRate"] == 0.1
    assert wire["buyerName"] == "Nguyen Van A"
    assert wire["buyerCompanyName"] is None
    assert wire["buyerEmail"] == "a@inanphat.vn"


def test_build_request_rejects_empty_selection():
    with pytest.raises(ValidationError) as exc_info:
        InvoiceService.build_request(InvoiceDraft())
    assert exc_info.value.code == "EMPTY_SELECTION"


async def test_submit_empty_draft_makes_no_call():
    client = AsyncMock()
    with pytest.raises(ValidationError):
        await InvoiceService.submit(InvoiceDraft(), client)
    client.create_invoice_from_lines.assert_not_called()


async def test_submit_delegates_to_backend(billable_items):
    client = AsyncMock()
    client.create_invoice_from_lines.return_value = CreatedInvoice(id=9, invoice_number="INV-9")

    created = await InvoiceService.submit(_draft_for(billable_items), client)

    assert created.id == 9
    sent = client.create_invoice_from_lines.call_args.args[0]
    assert [line.delivery_line_id for line in sent.lines] == [11, 12]


async def test_submit_surfaces_backend_error_unchanged(billable_items):
    error = CollaboratorError("Customer is locked", upstream_status=400, payload={"message": "Customer is locked"})
    client = AsyncMock()
    client.create_invoice_from_lines.side_effect = error
    guard = SubmissionGuard()

    with pytest.raises(CollaboratorError) as exc_info:
        await InvoiceService.submit(_draft_for(billable_items), client, guard)

    assert exc_info.value is error
    assert client.create_invoice_from_lines.await_count == 1
    assert guard.pending is False


async def test_second_submission_of_same_draft_is_refused(billable_items):
    guard = SubmissionGuard()
    client = AsyncMock()
    draft = _draft_for(billable_items)

    with guard.hold(InvoiceService.submission_key(draft)):
        with pytest.raises(ValidationError) as exc_info:
            await InvoiceService.submit(draft, client, guard)

    assert exc_info.value.code == "SUBMISSION_PENDING"
    client.create_invoice_from_lines.assert_not_called()
    assert guard.pending is False


async def test_other_draft_goes_through_while_one_is_pending(billable_items):
    guard = SubmissionGuard()
    client = AsyncMock()
    client.create_invoice_from_lines.return_value = CreatedInvoice(id=10)
    pending_draft = _draft_for(billable_items[:1])
    other_draft = _draft_for(billable_items[1:])

    with guard.hold(InvoiceService.submission_key(pending_draft)):
        created = await InvoiceService.submit(other_draft, client, guard)
        assert guard.is_pending(InvoiceService.submission_key(pending_draft))
        assert not guard.is_pending(InvoiceService.submission_key(other_draft))

    assert created.id == 10


def test_submission_key_ignores_selection_order(billable_items):
    forward = _draft_for(billable_items)
    backward = _draft_for(list(reversed(billable_items)))
    assert InvoiceService.submission_key(forward) == InvoiceService.submission_key(backward) == (11, 12)
