from typing import Optional
from datetime import datetime
from pydantic import AliasChoices, Field, field_validator

from billing_core.models.enums import DocumentKind, DocumentStatus, normalize_status
from billing_core.schemas.common import FrozenCamelModel, Money


class SettlementDocument(FrozenCamelModel):
    """
    A cash receipt or cash payment voucher.

    ``status`` is normalized from whatever spelling the backend used.
    Transitions produce new instances; see SettlementService.
    """
    id: int
    code: Optional[str] = None
    kind: DocumentKind = DocumentKind.CASH_RECEIPT
    status: DocumentStatus
    amount: Money = Field(default=0)
    voucher_date: Optional[datetime] = None
    posting_date: Optional[datetime] = None
    counterparty_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "counterpartyName", "counterparty_name", "payerName", "payeeName", "receiverName"
        ),
    )
    reason: Optional[str] = None
    notes: Optional[str] = None
    order_id: Optional[int] = None
    order_code: Optional[str] = None
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    customer_id: Optional[int] = None
    vendor_id: Optional[int] = None

    # Display metadata
    created_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by_name: Optional[str] = None
    posted_at: Optional[datetime] = None
    posted_by_name: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize(cls, v):
        status = normalize_status(v)
        if status is None:
            raise ValueError(f"Unrecognized document status: {v!r}")
        return status


class DocumentActions(FrozenCamelModel):
    """Which operations the current status allows"""
    status: DocumentStatus
    can_edit: bool
    can_approve: bool
    can_post: bool
    can_cancel: bool
    can_delete: bool
