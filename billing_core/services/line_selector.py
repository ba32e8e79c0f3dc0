"""Billable Line Selector - builds the line set of a draft invoice"""

from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from billing_core.core.exceptions import ValidationError
from billing_core.core.logging import get_logger
from billing_core.schemas.invoice import BillableItem, InvoiceDraft, LineSelection
from billing_core.utils.money import clamp, to_decimal

logger = get_logger(__name__)


class LineSelector:
    """
    Tracks which delivery lines are chosen for invoicing.

    The selection is a read-only mapping of delivery line id to
    ``LineSelection``; every edit builds a new mapping and swaps it in, so a
    mapping handed out earlier never changes underneath its holder.
    Billable items are never modified.
    """

    def __init__(self, items: Iterable[BillableItem] = ()) -> None:
        self._items: Dict[int, BillableItem] = {}
        self._selected: Mapping[int, LineSelection] = MappingProxyType({})
        self.refresh(items)

    # Snapshot

    def refresh(self, items: Iterable[BillableItem]) -> None:
        """Replace the billable item snapshot (e.g. after a re-fetch)."""
        self._items = {
            item.delivery_line_id: item for item in items if item.delivery_line_id
        }

    @property
    def items(self) -> Tuple[BillableItem, ...]:
        return tuple(self._items.values())

    def item(self, item_id: int) -> Optional[BillableItem]:
        return self._items.get(item_id)

    # Selection state

    @property
    def selections(self) -> Mapping[int, LineSelection]:
        return self._selected

    @property
    def lines(self) -> Tuple[LineSelection, ...]:
        return tuple(self._selected.values())

    def is_selected(self, item_id: Optional[int]) -> bool:
        return item_id in self._selected

    def get(self, item_id: int) -> Optional[LineSelection]:
        return self._selected.get(item_id)

    def __len__(self) -> int:
        return len(self._selected)

    def _replace(self, selected: Dict[int, LineSelection]) -> None:
        self._selected = MappingProxyType(selected)

    # Mutations

    def toggle(self, item: BillableItem) -> None:
        """Select an unselected item, or drop it if already selected."""
        item_id = item.delivery_line_id
        if not item_id:
            # Partially loaded rows cannot be addressed; ignore them
            logger.debug("Ignoring billable item without delivery line id")
            return

        selected = dict(self._selected)
        if item_id in selected:
            del selected[item_id]
        else:
            selected[item_id] = LineSelection(
                delivery_line_id=item_id,
                invoice_qty=item.remaining_to_invoice or 1,
                discount_percent=None,
            )
        self._replace(selected)

    def set_quantity(self, item_id: int, requested: Any) -> None:
        """
        Store ``requested`` clamped into [1, remaining_to_invoice].

        The bound comes from the live snapshot, not from the value cached when
        the line was selected. Non-numeric and non-finite input counts as 1.
        """
        existing = self._selected.get(item_id)
        item = self._items.get(item_id)
        if existing is None or item is None:
            return

        parsed = to_decimal(requested, default=None)
        quantity = int(parsed) if parsed is not None else 1
        max_qty = item.remaining_to_invoice or 1

        selected = dict(self._selected)
        selected[item_id] = existing.model_copy(
            update={"invoice_qty": clamp(quantity, 1, max_qty)}
        )
        self._replace(selected)

    def set_discount_percent(self, item_id: int, value: Any) -> None:
        """
        Store a line discount as entered; range checks happen at aggregation.

        None or a blank string clears the discount. Input that is not a
        number raises ValidationError.
        """
        existing = self._selected.get(item_id)
        if existing is None:
            return

        percent = None
        if value is not None and str(value).strip():
            percent = to_decimal(value, default=None)
            if percent is None:
                raise ValidationError(f"Discount for delivery line {item_id} must be a number, got {value!r}.")

        selected = dict(self._selected)
        selected[item_id] = LineSelection(
            delivery_line_id=existing.delivery_line_id,
            invoice_qty=existing.invoice_qty,
            discount_percent=percent,
        )
        self._replace(selected)

    def reset(self) -> None:
        """Discard every selection (dialog closed or draft abandoned)."""
        self._replace({})

    def to_draft(self, draft: Optional[InvoiceDraft] = None, **fields: Any) -> InvoiceDraft:
        """
        Draft carrying the current lines.

        Order-level fields come from ``draft`` when given, otherwise from
        ``fields`` (same names as InvoiceDraft).
        """
        if draft is None:
            draft = InvoiceDraft(**fields)
        return draft.with_lines(self.lines)
