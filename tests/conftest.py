"""Shared pytest fixtures for unit and API tests."""

import asyncio
import os

from dotenv import load_dotenv

load_dotenv()

# Must be set before the app (and its settings) are imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")

from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from billing_core.api import deps
from billing_core.config import settings
from billing_core.core.exceptions import TransitionError
from billing_core.main import app
from billing_core.models.enums import DocumentKind
from billing_core.schemas.debt import DebtPage
from billing_core.schemas.invoice import BillableItem, CreatedInvoice
from billing_core.schemas.settlement import SettlementDocument
from billing_core.services.settlement_service import SettlementService


class FakeBackend:
    """In-memory stand-in for BackendClient; records every call."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.billable_items: List[BillableItem] = []
        self.documents: Dict[tuple, SettlementDocument] = {}
        self.debt_page = DebtPage()
        self.fail_with: Optional[Exception] = None
        # When set, invoice creation waits on it so submissions stay in flight
        self.gate: Optional[asyncio.Event] = None
        self.invoice_started = asyncio.Event()

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch_billable_items(self, customer_id=None):
        self.calls.append(("fetch_billable_items", customer_id))
        self._maybe_fail()
        return self.billable_items

    async def create_invoice_from_lines(self, request):
        self.calls.append(("create_invoice_from_lines", request))
        self._maybe_fail()
        self.invoice_started.set()
        if self.gate is not None:
            await self.gate.wait()
        return CreatedInvoice(id=501, invoice_number="INV-0501", status="draft")

    async def record_payment(self, request):
        self.calls.append(("record_payment", request))
        self._maybe_fail()
        return {"orderId": request.order_id, "paidAmount": int(request.amount)}

    async def get_document(self, kind, document_id):
        self.calls.append(("get_document", kind, document_id))
        self._maybe_fail()
        return self.documents[(kind, document_id)]

    async def transition_document(self, kind, document_id, action):
        self.calls.append(("transition_document", kind, document_id, action))
        self._maybe_fail()
        document = self.documents[(kind, document_id)]
        try:
            updated = SettlementService.transition(document, action)
        except TransitionError:
            raise TransitionError("Backend refused the transition.")
        self.documents[(kind, document_id)] = updated
        return updated

    async def delete_document(self, kind, document_id):
        self.calls.append(("delete_document", kind, document_id))
        self._maybe_fail()
        del self.documents[(kind, document_id)]

    async def fetch_debt_page(self, side, query):
        self.calls.append(("fetch_debt_page", side, query))
        self._maybe_fail()
        return self.debt_page


def make_document(status: Any = "draft", document_id: int = 7, **overrides) -> SettlementDocument:
    payload: Dict[str, Any] = {
        "id": document_id,
        "code": f"PT{document_id:04d}",
        "kind": DocumentKind.CASH_RECEIPT,
        "status": status,
        "amount": 250000,
        "payerName": "Cong ty In An Phat",
    }
    payload.update(overrides)
    return SettlementDocument.model_validate(payload)


@pytest.fixture
def billable_items() -> List[BillableItem]:
    """Two delivery lines: 5 x 100,000 and 10 x 50,000."""
    return [
        BillableItem(
            delivery_line_id=11,
            order_id=1,
            order_code="DH0001",
            design_code="TK-A",
            unit_price=Decimal("100000"),
            invoiced_qty=0,
            remaining_to_invoice=5,
        ),
        BillableItem(
            delivery_line_id=12,
            order_id=1,
            order_code="DH0001",
            design_code="TK-B",
            unit_price=Decimal("50000"),
            invoiced_qty=2,
            remaining_to_invoice=10,
        ),
    ]


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def api_base() -> str:
    """Base URL for API requests."""
    return f"http://test{settings.API_V1_PREFIX}"


@pytest.fixture
async def async_client(fake_backend: FakeBackend, api_base: str):
    """Async HTTP client against the app, with the backend replaced by FakeBackend."""

    async def override():
        yield fake_backend

    app.dependency_overrides[deps.get_backend_client] = override
    transport = ASGITransport(app=app)
    client = AsyncClient(transport=transport, base_url=api_base, timeout=30.0)
    yield client
    await client.aclose()
    app.dependency_overrides.clear()


@pytest.fixture
def document_factory():
    """Build SettlementDocument instances from backend-shaped payloads."""
    return make_document
