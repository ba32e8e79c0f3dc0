from typing import Any, List, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query

from billing_core.api import deps
from billing_core.models.enums import LedgerSide
from billing_core.schemas.debt import AgingInput, AgingQuery, AgingRow, DebtPosition, DebtReport
from billing_core.schemas.responses import SuccessResponse
from billing_core.services.backend_client import BackendClient
from billing_core.services.debt_service import DebtService

router = APIRouter()


@router.post("/positions", response_model=SuccessResponse[List[DebtPosition]])
async def compute_positions(body: AgingInput) -> Any:
    """
    Current / overdue rollup per counterparty for the given records.
    """
    return SuccessResponse(data=DebtService.aggregate_positions(body.records, body.as_of))


@router.post("/aging", response_model=SuccessResponse[List[AgingRow]])
async def compute_aging(body: AgingInput) -> Any:
    """
    Days-overdue buckets per counterparty for the given records.
    """
    return SuccessResponse(data=DebtService.aging_rows(body.records, body.as_of))


@router.get("/{side}", response_model=SuccessResponse[DebtReport])
async def get_debt_report(
    side: LedgerSide,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    counterparty_id: Optional[int] = None,
    search: Optional[str] = None,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    """
    One page of receivables or payables, aged. Totals cover this page only.
    """
    query = AgingQuery(
        page_number=page,
        page_size=page_size,
        from_date=from_date,
        to_date=to_date,
        counterparty_id=counterparty_id,
        search=search,
    )
    report = await DebtService.fetch_report(side, query, client)
    return SuccessResponse(data=report)
