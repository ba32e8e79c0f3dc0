"""Integration tests: Invoice preview and creation endpoints."""

import asyncio

import pytest
from httpx import AsyncClient

from billing_core.core.exceptions import CollaboratorError


def _items_payload():
    return [
        {"deliveryLineId": 11, "orderCode": "DH0001", "unitPrice": 100000, "remainingToInvoice": 5},
        {"deliveryLineId": 12, "orderCode": "DH0001", "unitPrice": 50000, "remainingToInvoice": 10},
    ]


@pytest.mark.asyncio
async def test_preview_totals(async_client: AsyncClient, api_base: str):
    resp = await async_client.post(
        f"{api_base}/invoices/preview",
        json={
            "draft": {
                "lines": [
                    {"deliveryLineId": 11, "invoiceQty": 5},
                    {"deliveryLineId": 12, "invoiceQty": 10},
                ],
                "discountPercent": 10,
                "taxRate": "0.1",
            },
            "items": _items_payload(),
        },
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["totals"] == {
        "subTotal": 1000000,
        "discountValue": 100000,
        "totalAfterDiscount": 900000,
        "taxValue": 90000,
        "grandTotal": 990000,
    }
    assert data["lineCount"] == 2
    assert data["canSubmit"] is True


@pytest.mark.asyncio
async def test_preview_out_of_range_discount(async_client: AsyncClient, api_base: str):
    resp = await async_client.post(
        f"{api_base}/invoices/preview",
        json={
            "draft": {"lines": [{"deliveryLineId": 11, "invoiceQty": 1}], "discountPercent": 120},
            "items": _items_payload(),
        },
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_list_billable_items(async_client: AsyncClient, api_base: str, fake_backend, billable_items):
    fake_backend.billable_items = billable_items
    resp = await async_client.get(f"{api_base}/invoices/billable-items", params={"customer_id": 3})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [row["deliveryLineId"] for row in data] == [11, 12]
    assert data[0]["unitPrice"] == 100000
    assert fake_backend.calls == [("fetch_billable_items", 3)]


@pytest.mark.asyncio
async def test_create_with_no_lines_is_rejected(async_client: AsyncClient, api_base: str, fake_backend):
    resp = await async_client.post(f"{api_base}/invoices/from-lines", json={"lines": []})
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "EMPTY_SELECTION"
    assert fake_backend.calls == []


@pytest.mark.asyncio
async def test_create_invoice(async_client: AsyncClient, api_base: str, fake_backend):
    resp = await async_client.post(
        f"{api_base}/invoices/from-lines",
        json={
            "lines": [{"deliveryLineId": 11, "invoiceQty": 2}],
            "discountAmount": 0,
            "notes": "  ",
            "buyer": {"companyName": "Cong ty In An Phat"},
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["data"]["invoiceNumber"] == "INV-0501"
    assert body["message"] == "Invoice created successfully"

    [(name, request)] = fake_backend.calls
    assert name == "create_invoice_from_lines"
    assert request.discount_amount is None
    assert request.notes is None
    assert request.buyer_company_name == "Cong ty In An Phat"


@pytest.mark.asyncio
async def test_backend_failure_is_bad_gateway(async_client: AsyncClient, api_base: str, fake_backend):
    fake_backend.fail_with = CollaboratorError("Could not create the invoice.", upstream_status=503)
    resp = await async_client.post(
        f"{api_base}/invoices/from-lines",
        json={"lines": [{"deliveryLineId": 11, "invoiceQty": 1}]},
    )
    assert resp.status_code == 502
    assert resp.json()["error"] == {
        "code": "COLLABORATOR_ERROR",
        "message": "Could not create the invoice.",
        "details": None,
    }


async def _wait_for_creations(fake_backend, count: int) -> None:
    while sum(1 for call in fake_backend.calls if call[0] == "create_invoice_from_lines") < count:
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_different_drafts_submit_concurrently(async_client: AsyncClient, api_base: str, fake_backend):
    fake_backend.gate = asyncio.Event()
    url = f"{api_base}/invoices/from-lines"

    first = asyncio.create_task(
        async_client.post(url, json={"lines": [{"deliveryLineId": 11, "invoiceQty": 1}]})
    )
    await asyncio.wait_for(fake_backend.invoice_started.wait(), timeout=5)
    second = asyncio.create_task(
        async_client.post(url, json={"lines": [{"deliveryLineId": 12, "invoiceQty": 3}]})
    )
    await asyncio.wait_for(_wait_for_creations(fake_backend, 2), timeout=5)
    fake_backend.gate.set()

    responses = await asyncio.gather(first, second)
    assert [resp.status_code for resp in responses] == [200, 200]


@pytest.mark.asyncio
async def test_same_draft_is_refused_while_pending(async_client: AsyncClient, api_base: str, fake_backend):
    fake_backend.gate = asyncio.Event()
    url = f"{api_base}/invoices/from-lines"
    body = {"lines": [{"deliveryLineId": 11, "invoiceQty": 2}, {"deliveryLineId": 12, "invoiceQty": 1}]}

    first = asyncio.create_task(async_client.post(url, json=body))
    await asyncio.wait_for(fake_backend.invoice_started.wait(), timeout=5)

    reordered = {"lines": list(reversed(body["lines"]))}
    resp = await async_client.post(url, json=reordered)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "SUBMISSION_PENDING"

    fake_backend.gate.set()
    assert (await first).status_code == 200

    # Released once the first submission finished
    resp = await async_client.post(url, json=body)
    assert resp.status_code == 200
