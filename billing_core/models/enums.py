"""Centralized Enum Definitions"""

import enum
from typing import Optional


# Payments
class PaymentKind(str, enum.Enum):
    """Full settlement of the balance or an explicit partial amount"""
    FULL = "full"
    PARTIAL = "partial"


# Settlement documents
class DocumentKind(str, enum.Enum):
    """Settlement document types sharing one lifecycle"""
    CASH_RECEIPT = "cash-receipts"
    CASH_PAYMENT = "cash-payments"


class DocumentStatus(str, enum.Enum):
    """Settlement document lifecycle states"""
    DRAFT = "draft"
    APPROVED = "approved"
    POSTED = "posted"
    CANCELLED = "cancelled"


class DocumentAction(str, enum.Enum):
    """Operations a caller may request on a settlement document"""
    EDIT = "edit"
    APPROVE = "approve"
    POST = "post"
    CANCEL = "cancel"
    DELETE = "delete"


# Debt
class LedgerSide(str, enum.Enum):
    """Receivable (customers) or payable (vendors)"""
    RECEIVABLE = "receivable"
    PAYABLE = "payable"


class AgingBucket(str, enum.Enum):
    """Days-overdue buckets used by aging reports"""
    NOT_DUE = "not_due"
    DAYS_0_30 = "days_0_30"
    DAYS_31_60 = "days_31_60"
    DAYS_61_90 = "days_61_90"
    DAYS_OVER_90 = "days_over_90"


def normalize_status(raw) -> Optional[DocumentStatus]:
    """
    Map an upstream status string onto DocumentStatus.

    Matching is case-insensitive and tolerant of decorated variants
    ("Draft", "STATUS_DRAFT", "approved_by_manager"). Unknown values give None.
    """
    if raw is None:
        return None
    if isinstance(raw, DocumentStatus):
        return raw
    text = str(raw).strip().lower()
    if not text:
        return None
    for status in (
        DocumentStatus.DRAFT,
        DocumentStatus.APPROVED,
        DocumentStatus.POSTED,
        DocumentStatus.CANCELLED,
    ):
        if status.value in text:
            return status
    # "canceled" (US spelling) appears in some upstream payloads
    if "canceled" in text:
        return DocumentStatus.CANCELLED
    return None
