"""Debt Aging Service"""

from datetime import date, datetime
from typing import Dict, Hashable, Iterable, List, Optional, Tuple, Union

from billing_core.core.logging import get_logger
from billing_core.models.enums import AgingBucket, LedgerSide
from billing_core.schemas.debt import (
    AgedDebtRecord,
    AgingQuery,
    AgingRow,
    DebtPosition,
    DebtRecord,
    DebtReport,
    DebtSummary,
)
from billing_core.schemas.responses import PaginationMeta
from billing_core.utils.money import ZERO
from billing_core.utils.time import as_date, get_utc_now

logger = get_logger(__name__)

Moment = Union[date, datetime, None]


def _today(now: Moment) -> date:
    return as_date(now) if now is not None else get_utc_now().date()


def bucket_for(days_overdue: Optional[int]) -> AgingBucket:
    if days_overdue is None or days_overdue <= 0:
        return AgingBucket.NOT_DUE
    if days_overdue <= 30:
        return AgingBucket.DAYS_0_30
    if days_overdue <= 60:
        return AgingBucket.DAYS_31_60
    if days_overdue <= 90:
        return AgingBucket.DAYS_61_90
    return AgingBucket.DAYS_OVER_90


def _counterparty_key(record: DebtRecord) -> Hashable:
    if record.counterparty_id is not None:
        return ("id", record.counterparty_id)
    return ("name", record.counterparty_name)


class DebtService:
    @staticmethod
    def age_record(record: DebtRecord, now: Moment = None) -> AgedDebtRecord:
        """
        Classify one record as current or overdue relative to ``now``.

        Overdue means the due date is strictly before today; days overdue is
        the whole number of days past it. Records without a due date are
        current.
        """
        today = _today(now)
        days_overdue = None
        if record.due_date is not None and record.due_date < today:
            days_overdue = (today - record.due_date).days
        return AgedDebtRecord.model_validate(
            {
                **record.model_dump(),
                "is_overdue": days_overdue is not None,
                "days_overdue": days_overdue,
                "bucket": bucket_for(days_overdue),
            }
        )

    @staticmethod
    def age_records(records: Iterable[DebtRecord], now: Moment = None) -> List[AgedDebtRecord]:
        today = _today(now)
        return [DebtService.age_record(record, today) for record in records]

    @staticmethod
    def aggregate_positions(records: Iterable[DebtRecord], now: Moment = None) -> List[DebtPosition]:
        """
        Roll records up per counterparty, in first-seen order.

        Every record lands in exactly one of current / overdue, so
        ``total_debt == current_debt + overdue_debt``. Only the records
        passed in are counted.
        """
        groups: Dict[Hashable, dict] = {}
        for aged in DebtService.age_records(records, now):
            key = _counterparty_key(aged)
            group = groups.setdefault(key, {
                "counterparty_id": aged.counterparty_id,
                "counterparty_name": aged.counterparty_name,
                "current_debt": ZERO,
                "overdue_debt": ZERO,
                "last_payment_date": None,
                "last_payment_amount": None,
            })
            if aged.is_overdue:
                group["overdue_debt"] += aged.remaining_amount
            else:
                group["current_debt"] += aged.remaining_amount
            if group["counterparty_name"] is None:
                group["counterparty_name"] = aged.counterparty_name
            if aged.last_payment_date is not None and (
                group["last_payment_date"] is None or aged.last_payment_date > group["last_payment_date"]
            ):
                group["last_payment_date"] = aged.last_payment_date
                group["last_payment_amount"] = aged.last_payment_amount

        return [
            DebtPosition(total_debt=g["current_debt"] + g["overdue_debt"], **g)
            for g in groups.values()
        ]

    @staticmethod
    def aging_rows(records: Iterable[DebtRecord], now: Moment = None) -> List[AgingRow]:
        """Per-counterparty amounts split by days-overdue bucket"""
        groups: Dict[Hashable, Tuple[DebtRecord, Dict[AgingBucket, object]]] = {}
        for aged in DebtService.age_records(records, now):
            key = _counterparty_key(aged)
            if key not in groups:
                groups[key] = (aged, {bucket: ZERO for bucket in AgingBucket})
            groups[key][1][aged.bucket] += aged.remaining_amount

        rows = []
        for first, amounts in groups.values():
            rows.append(AgingRow(
                counterparty_id=first.counterparty_id,
                counterparty_name=first.counterparty_name,
                not_due=amounts[AgingBucket.NOT_DUE],
                days_0_30=amounts[AgingBucket.DAYS_0_30],
                days_31_60=amounts[AgingBucket.DAYS_31_60],
                days_61_90=amounts[AgingBucket.DAYS_61_90],
                days_over_90=amounts[AgingBucket.DAYS_OVER_90],
                total=sum(amounts.values(), ZERO),
            ))
        return rows

    @staticmethod
    def summarize(positions: Iterable[DebtPosition]) -> DebtSummary:
        """Totals across the given positions (the loaded page only)."""
        positions = list(positions)
        return DebtSummary(
            counterparties=len(positions),
            total_debt=sum((p.total_debt for p in positions), ZERO),
            current_debt=sum((p.current_debt for p in positions), ZERO),
            overdue_debt=sum((p.overdue_debt for p in positions), ZERO),
        )

    @staticmethod
    def build_report(
        side: LedgerSide,
        records: Iterable[DebtRecord],
        now: Moment = None,
        meta: Optional[PaginationMeta] = None,
    ) -> DebtReport:
        records = list(records)
        today = _today(now)
        positions = DebtService.aggregate_positions(records, today)
        return DebtReport(
            side=side,
            as_of=today,
            records=DebtService.age_records(records, today),
            positions=positions,
            aging=DebtService.aging_rows(records, today),
            summary=DebtService.summarize(positions),
            meta=meta,
        )

    @staticmethod
    async def fetch_report(
        side: LedgerSide,
        query: AgingQuery,
        client,
        now: Moment = None,
    ) -> DebtReport:
        """
        Fetch one page of outstanding records and age it.

        The rollups describe that page only; no further pages are requested.
        """
        page = await client.fetch_debt_page(LedgerSide(side), query)
        logger.info(
            "Aging debt page",
            extra={"side": LedgerSide(side).value, "page": page.page, "rows": len(page.items)},
        )
        meta = PaginationMeta(
            page=max(page.page, 1),
            page_size=min(max(page.size, 1), 100),
            total=max(page.total, 0),
            total_pages=max(page.total_pages, 0),
        )
        return DebtService.build_report(side, page.items, now, meta)
