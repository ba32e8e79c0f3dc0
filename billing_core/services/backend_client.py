"""Backend API client.

Thin async wrapper over the accounting backend's REST endpoints. It does no
retrying and no caching; every failure is raised to the caller as a
``CollaboratorError`` (or ``TransitionError`` when the backend refuses a
document transition) carrying the backend's own status code and payload.
"""

from typing import Any, Dict, List, Optional

import httpx

from billing_core.config import settings
from billing_core.core.exceptions import CollaboratorError, TransitionError
from billing_core.core.logging import get_logger
from billing_core.models.enums import DocumentAction, DocumentKind, LedgerSide
from billing_core.schemas.debt import AgingQuery, DebtPage
from billing_core.schemas.invoice import BillableItem, CreatedInvoice, CreateInvoiceFromLinesRequest
from billing_core.schemas.payment import RecordPaymentRequest
from billing_core.schemas.settlement import SettlementDocument

logger = get_logger(__name__)

# Statuses with which the backend refuses a state change it does not allow
TRANSITION_REJECTIONS = frozenset({400, 409, 422})

DEBT_DETAIL_PATHS = {
    LedgerSide.RECEIVABLE: "/api/accountings/ar/detail",
    LedgerSide.PAYABLE: "/api/accountings/ap/detail",
}


def _unwrap(payload: Any) -> Any:
    # Some endpoints answer {"data": ...}, others the bare object
    if isinstance(payload, dict) and "data" in payload and set(payload) <= {"data", "success", "message"}:
        return payload["data"]
    return payload


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "title", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    if isinstance(payload, str) and payload:
        return payload
    return fallback


class BackendClient:
    """
    Async client for the accounting backend.

    Args:
        http: An ``httpx.AsyncClient``; when omitted one is created from
            settings and closed by ``aclose()``.
        correlation_id: Forwarded as ``X-Request-ID``.
    """

    def __init__(self, http: Optional[httpx.AsyncClient] = None, correlation_id: Optional[str] = None) -> None:
        self._owns_http = http is None
        if http is None:
            headers = {"Accept": "application/json"}
            if settings.BACKEND_API_TOKEN:
                headers["Authorization"] = f"Bearer {settings.BACKEND_API_TOKEN}"
            http = httpx.AsyncClient(
                base_url=settings.BACKEND_API_URL,
                timeout=settings.BACKEND_TIMEOUT,
                headers=headers,
            )
        self._http = http
        self._correlation_id = correlation_id

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        transition: bool = False,
    ) -> Any:
        headers = {"X-Request-ID": self._correlation_id} if self._correlation_id else None
        try:
            response = await self._http.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.error(
                f"Backend unreachable while trying to {operation}",
                extra={"path": path, "correlation_id": self._correlation_id},
            )
            raise CollaboratorError(f"Could not {operation}: backend unreachable.") from exc

        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text

        if response.is_error:
            message = _error_message(payload, f"Could not {operation}.")
            logger.warning(
                f"Backend rejected request to {operation}",
                extra={
                    "path": path,
                    "status_code": response.status_code,
                    "correlation_id": self._correlation_id,
                },
            )
            if transition and response.status_code in TRANSITION_REJECTIONS:
                raise TransitionError(message)
            raise CollaboratorError(message, upstream_status=response.status_code, payload=payload)

        return _unwrap(payload)

    # Invoices

    async def fetch_billable_items(self, customer_id: Optional[int] = None) -> List[BillableItem]:
        params = {"customerId": customer_id} if customer_id is not None else None
        data = await self._request(
            "GET", "/api/invoices/billable-items", "load billable items", params=params
        )
        return [BillableItem.model_validate(row) for row in (data or [])]

    async def create_invoice_from_lines(self, request: CreateInvoiceFromLinesRequest) -> CreatedInvoice:
        data = await self._request(
            "POST", "/api/invoices/from-lines", "create the invoice", json=request.to_wire()
        )
        return CreatedInvoice.model_validate(data or {})

    # Payments

    async def record_payment(self, request: RecordPaymentRequest) -> Any:
        return await self._request(
            "POST",
            f"/api/accountings/order/{request.order_id}/confirm-payment",
            "record the payment",
            json=request.to_wire(),
        )

    # Settlement documents

    async def get_document(self, kind: DocumentKind, document_id: int) -> SettlementDocument:
        data = await self._request("GET", f"/api/{kind.value}/{document_id}", "load the document")
        return SettlementDocument.model_validate({**data, "kind": kind})

    async def transition_document(
        self, kind: DocumentKind, document_id: int, action: DocumentAction
    ) -> SettlementDocument:
        data = await self._request(
            "POST",
            f"/api/{kind.value}/{document_id}/{action.value}",
            f"{action.value} the document",
            transition=True,
        )
        if not data:
            # Endpoint answered 204; re-fetch so callers see the new state
            return await self.get_document(kind, document_id)
        return SettlementDocument.model_validate({**data, "kind": kind})

    async def delete_document(self, kind: DocumentKind, document_id: int) -> None:
        await self._request(
            "DELETE", f"/api/{kind.value}/{document_id}", "delete the document", transition=True
        )

    # Debt

    async def fetch_debt_page(self, side: LedgerSide, query: AgingQuery) -> DebtPage:
        data = await self._request(
            "GET", DEBT_DETAIL_PATHS[side], "load outstanding balances", params=query.to_params(side)
        )
        return DebtPage.model_validate(data or {})
