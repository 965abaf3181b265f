import logging
from typing import Dict, List, Set

from modules.common.errors import DocumentStateError
from modules.documents.models.document import Document, DocumentStatus

logger = logging.getLogger(__name__)

# Deletion is not a transition; it is valid from every state.
ALLOWED_TRANSITIONS: Dict[DocumentStatus, Set[DocumentStatus]] = {
    DocumentStatus.DRAFT: {DocumentStatus.PENDING_SETUP, DocumentStatus.SENT},
    DocumentStatus.PENDING_SETUP: {DocumentStatus.SENT},
    DocumentStatus.SENT: {DocumentStatus.SIGNED},
    DocumentStatus.SIGNED: set(),
}


class DocumentStateService:

    @staticmethod
    def can_change_state(document: Document, new_state: DocumentStatus) -> bool:
        """
        Defines the lifecycle: draft/pending_setup -> sent -> signed
        """
        return new_state in ALLOWED_TRANSITIONS.get(document.status, set())

    @staticmethod
    def ensure_transition(document: Document, new_state: DocumentStatus) -> None:
        if not DocumentStateService.can_change_state(document, new_state):
            raise DocumentStateError(
                f"Document {document.id} cannot change "
                f"from {document.status.value} to {new_state.value}"
            )

    @staticmethod
    def change_document_state(document: Document, new_state: DocumentStatus) -> Document:
        """
        Flips the status in memory after validating the transition. Callers
        commit it together with the rest of the transition's data.
        """
        DocumentStateService.ensure_transition(document, new_state)
        previous_state = document.status
        document.status = new_state
        logger.info("Document %s changed from %s to %s", document.id, previous_state.value, new_state.value)
        return document

    @staticmethod
    def get_allowed_transitions(document: Document) -> List[DocumentStatus]:
        """
        Returns list of states the document can transition to
        """
        return [state for state in DocumentStatus if DocumentStateService.can_change_state(document, state)]
