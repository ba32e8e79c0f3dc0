from typing import Any, List, Optional
from fastapi import APIRouter, Depends

from billing_core.api import deps
from billing_core.schemas.invoice import (
    BillableItem,
    CreatedInvoice,
    InvoiceDraft,
    InvoicePreview,
    InvoicePreviewRequest,
)
from billing_core.schemas.responses import SuccessResponse
from billing_core.services.backend_client import BackendClient
from billing_core.services.invoice_service import InvoiceService, SubmissionGuard

router = APIRouter()

# Pending submissions, keyed per draft
submission_guard = SubmissionGuard()


@router.get("/billable-items", response_model=SuccessResponse[List[BillableItem]])
async def list_billable_items(
    customer_id: Optional[int] = None,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    """
    Delivery lines that can still be invoiced.
    """
    items = await client.fetch_billable_items(customer_id)
    return SuccessResponse(data=items)


@router.post("/preview", response_model=SuccessResponse[InvoicePreview])
async def preview_invoice(body: InvoicePreviewRequest) -> Any:
    """
    Compute totals for a draft against the supplied item snapshot.
    """
    totals = InvoiceService.compute_totals(body.draft, body.items)
    preview = InvoicePreview(
        totals=totals,
        line_count=len(body.draft.lines),
        can_submit=bool(body.draft.lines),
    )
    return SuccessResponse(data=preview)


@router.post("/from-lines", response_model=SuccessResponse[CreatedInvoice])
async def create_invoice_from_lines(
    draft: InvoiceDraft,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    """
    Validate the draft and create the invoice on the backend.
    """
    created = await InvoiceService.submit(draft, client, submission_guard)
    return SuccessResponse(data=created, message="Invoice created successfully")
