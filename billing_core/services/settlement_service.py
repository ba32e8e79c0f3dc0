"""Settlement Document Lifecycle - cash receipts and cash payments"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from billing_core.core.exceptions import TransitionError
from billing_core.core.logging import get_logger
from billing_core.models.enums import (
    DocumentAction,
    DocumentKind,
    DocumentStatus,
    normalize_status,
)
from billing_core.schemas.settlement import DocumentActions, SettlementDocument
from billing_core.utils.time import get_utc_now

logger = get_logger(__name__)

StatusLike = Union[DocumentStatus, str, None]

# draft -> approved -> posted; draft|approved -> cancelled
TRANSITIONS: Dict[DocumentAction, Dict[DocumentStatus, Optional[DocumentStatus]]] = {
    DocumentAction.EDIT: {DocumentStatus.DRAFT: DocumentStatus.DRAFT},
    DocumentAction.APPROVE: {DocumentStatus.DRAFT: DocumentStatus.APPROVED},
    DocumentAction.POST: {DocumentStatus.APPROVED: DocumentStatus.POSTED},
    DocumentAction.CANCEL: {
        DocumentStatus.DRAFT: DocumentStatus.CANCELLED,
        DocumentStatus.APPROVED: DocumentStatus.CANCELLED,
    },
    # Deletion removes the document; there is no resulting state
    DocumentAction.DELETE: {DocumentStatus.DRAFT: None},
}

TERMINAL_STATES = frozenset({DocumentStatus.POSTED, DocumentStatus.CANCELLED})


def _status(value: StatusLike) -> Optional[DocumentStatus]:
    return normalize_status(value)


def is_allowed(action: DocumentAction, status: StatusLike) -> bool:
    return _status(status) in TRANSITIONS[DocumentAction(action)]


def can_edit(status: StatusLike) -> bool:
    return is_allowed(DocumentAction.EDIT, status)


def can_approve(status: StatusLike) -> bool:
    return is_allowed(DocumentAction.APPROVE, status)


def can_post(status: StatusLike) -> bool:
    return is_allowed(DocumentAction.POST, status)


def can_cancel(status: StatusLike) -> bool:
    return is_allowed(DocumentAction.CANCEL, status)


def can_delete(status: StatusLike) -> bool:
    return is_allowed(DocumentAction.DELETE, status)


def available_actions(status: StatusLike) -> List[DocumentAction]:
    return [action for action in DocumentAction if is_allowed(action, status)]


class SettlementService:
    @staticmethod
    def actions(document: SettlementDocument) -> DocumentActions:
        status = document.status
        return DocumentActions(
            status=status,
            can_edit=can_edit(status),
            can_approve=can_approve(status),
            can_post=can_post(status),
            can_cancel=can_cancel(status),
            can_delete=can_delete(status),
        )

    @staticmethod
    def ensure_allowed(document: SettlementDocument, action: DocumentAction) -> None:
        action = DocumentAction(action)
        if not is_allowed(action, document.status):
            raise TransitionError(
                f"Cannot {action.value} {document.kind.value.rstrip('s').replace('-', ' ')} "
                f"{document.code or document.id}: it is {document.status.value}."
            )

    @staticmethod
    def transition(
        document: SettlementDocument,
        action: DocumentAction,
        at: Optional[datetime] = None,
        by: Optional[str] = None,
    ) -> SettlementDocument:
        """
        Apply an approve / post / cancel transition locally.

        Returns a new document; the input is left untouched.

        Raises:
            TransitionError: If the action is not allowed from the current status
        """
        action = DocumentAction(action)
        if action in (DocumentAction.EDIT, DocumentAction.DELETE):
            raise TransitionError(f"'{action.value}' does not change the document status.")
        SettlementService.ensure_allowed(document, action)

        target = TRANSITIONS[action][document.status]
        at = at or get_utc_now()
        update: Dict[str, Any] = {"status": target}
        if target == DocumentStatus.APPROVED:
            update.update(approved_at=at, approved_by_name=by)
        elif target == DocumentStatus.POSTED:
            update.update(posted_at=at, posted_by_name=by)
        elif target == DocumentStatus.CANCELLED:
            update["cancelled_at"] = at
        return document.model_copy(update=update)

    @staticmethod
    async def fetch(kind: DocumentKind, document_id: int, client) -> SettlementDocument:
        return await client.get_document(DocumentKind(kind), document_id)

    @staticmethod
    async def perform(
        kind: DocumentKind,
        document_id: int,
        action: DocumentAction,
        client,
    ) -> Optional[SettlementDocument]:
        """
        Fetch the document, check the guard, then ask the backend to apply the action.

        Returns the updated document, or None after a delete. A backend
        rejection of the transition surfaces as TransitionError.
        """
        kind = DocumentKind(kind)
        action = DocumentAction(action)
        if action == DocumentAction.EDIT:
            raise TransitionError("'edit' is not a remote transition.")

        document = await client.get_document(kind, document_id)
        SettlementService.ensure_allowed(document, action)

        logger.info(
            "Settlement document transition",
            extra={"kind": kind.value, "document_id": document_id, "action": action.value},
        )
        if action == DocumentAction.DELETE:
            await client.delete_document(kind, document_id)
            return None
        return await client.transition_document(kind, document_id, action)
