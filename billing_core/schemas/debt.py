from typing import Any, Dict, List, Optional
from datetime import date, datetime
from pydantic import AliasChoices, Field, field_validator

from billing_core.models.enums import AgingBucket, LedgerSide
from billing_core.schemas.common import CamelModel, FrozenCamelModel, Money
from billing_core.schemas.responses import PaginationMeta
from billing_core.utils.time import as_date


def _parse_day(v: Any) -> Any:
    # Backend dates arrive as offset datetimes; only the calendar day matters
    if isinstance(v, str) and v.strip():
        text = v.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return as_date(datetime.fromisoformat(text))
        except ValueError:
            return v
    if isinstance(v, datetime):
        return as_date(v)
    if v == "":
        return None
    return v


class DebtRecord(FrozenCamelModel):
    """An outstanding invoice (receivable) or vendor bill (payable)"""
    counterparty_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("counterpartyId", "counterparty_id", "customerId", "vendorId")
    )
    counterparty_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("counterpartyName", "counterparty_name", "customerName", "vendorName")
    )
    document_number: Optional[str] = None
    document_date: Optional[date] = None
    due_date: Optional[date] = None
    remaining_amount: Money = Field(
        default=0, validation_alias=AliasChoices("remainingAmount", "remaining_amount", "outstanding")
    )
    last_payment_date: Optional[date] = None
    last_payment_amount: Optional[Money] = None

    @field_validator("document_date", "due_date", "last_payment_date", mode="before")
    @classmethod
    def parse_day(cls, v):
        return _parse_day(v)


class AgedDebtRecord(DebtRecord):
    is_overdue: bool
    days_overdue: Optional[int] = None
    bucket: AgingBucket


class DebtPosition(FrozenCamelModel):
    counterparty_id: Optional[int] = None
    counterparty_name: Optional[str] = None
    total_debt: Money
    current_debt: Money
    overdue_debt: Money
    last_payment_date: Optional[date] = None
    last_payment_amount: Optional[Money] = None


class AgingRow(FrozenCamelModel):
    counterparty_id: Optional[int] = None
    counterparty_name: Optional[str] = None
    not_due: Money = Field(default=0)
    days_0_30: Money = Field(default=0, alias="days0_30")
    days_31_60: Money = Field(default=0, alias="days31_60")
    days_61_90: Money = Field(default=0, alias="days61_90")
    days_over_90: Money = Field(default=0, alias="daysOver90")
    total: Money = Field(default=0)

    @property
    def buckets(self) -> Dict[AgingBucket, Any]:
        return {
            AgingBucket.NOT_DUE: self.not_due,
            AgingBucket.DAYS_0_30: self.days_0_30,
            AgingBucket.DAYS_31_60: self.days_31_60,
            AgingBucket.DAYS_61_90: self.days_61_90,
            AgingBucket.DAYS_OVER_90: self.days_over_90,
        }


class DebtSummary(FrozenCamelModel):
    """Totals over the rows currently loaded (one page), not the whole ledger"""
    counterparties: int
    total_debt: Money
    current_debt: Money
    overdue_debt: Money


class AgingQuery(CamelModel):
    page_number: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    counterparty_id: Optional[int] = None
    search: Optional[str] = None

    def to_params(self, side: LedgerSide) -> Dict[str, Any]:
        """Backend query string; the counterparty key depends on the ledger side"""
        params: Dict[str, Any] = {
            "pageNumber": self.page_number,
            "pageSize": self.page_size,
        }
        if self.from_date:
            params["fromDate"] = self.from_date.isoformat()
        if self.to_date:
            params["toDate"] = self.to_date.isoformat()
        if self.counterparty_id is not None:
            key = "customerId" if side == LedgerSide.RECEIVABLE else "vendorId"
            params[key] = self.counterparty_id
        if self.search:
            params["search"] = self.search
        return params


class DebtPage(FrozenCamelModel):
    """One page of outstanding records as returned by the backend"""
    items: List[DebtRecord] = []
    total: int = 0
    total_pages: int = 0
    page: int = 1
    size: int = 20

    @field_validator("items", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return v or []


class AgingInput(CamelModel):
    records: List[DebtRecord]
    as_of: Optional[date] = None


class DebtReport(CamelModel):
    side: LedgerSide
    as_of: date
    records: List[AgedDebtRecord]
    positions: List[DebtPosition]
    aging: List[AgingRow]
    summary: DebtSummary
    meta: Optional[PaginationMeta] = None
