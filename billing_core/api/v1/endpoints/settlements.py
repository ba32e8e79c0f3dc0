from typing import Any
from fastapi import APIRouter, Depends

from billing_core.api import deps
from billing_core.models.enums import DocumentAction, DocumentKind
from billing_core.schemas.responses import SuccessResponse
from billing_core.schemas.settlement import DocumentActions, SettlementDocument
from billing_core.services.backend_client import BackendClient
from billing_core.services.settlement_service import SettlementService

router = APIRouter()


@router.get("/{kind}/{document_id}/actions", response_model=SuccessResponse[DocumentActions])
async def get_document_actions(
    kind: DocumentKind,
    document_id: int,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    """
    Which actions the document's current status allows.
    """
    document = await SettlementService.fetch(kind, document_id, client)
    return SuccessResponse(data=SettlementService.actions(document))


@router.post("/{kind}/{document_id}/approve", response_model=SuccessResponse[SettlementDocument])
async def approve_document(
    kind: DocumentKind,
    document_id: int,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    document = await SettlementService.perform(kind, document_id, DocumentAction.APPROVE, client)
    return SuccessResponse(data=document, message="Document approved")


@router.post("/{kind}/{document_id}/post", response_model=SuccessResponse[SettlementDocument])
async def post_document(
    kind: DocumentKind,
    document_id: int,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    document = await SettlementService.perform(kind, document_id, DocumentAction.POST, client)
    return SuccessResponse(data=document, message="Document posted")


@router.post("/{kind}/{document_id}/cancel", response_model=SuccessResponse[SettlementDocument])
async def cancel_document(
    kind: DocumentKind,
    document_id: int,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    document = await SettlementService.perform(kind, document_id, DocumentAction.CANCEL, client)
    return SuccessResponse(data=document, message="Document cancelled")


@router.delete("/{kind}/{document_id}", response_model=SuccessResponse)
async def delete_document(
    kind: DocumentKind,
    document_id: int,
    client: BackendClient = Depends(deps.get_backend_client),
) -> Any:
    """
    Delete a draft document.
    """
    await SettlementService.perform(kind, document_id, DocumentAction.DELETE, client)
    return SuccessResponse(message="Document deleted")
