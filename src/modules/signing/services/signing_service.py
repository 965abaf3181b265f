import logging
from typing import Optional

from sqlalchemy.orm import Session

from modules.common.errors import DocumentValidationError
from modules.common.retry import call_with_retry
from modules.documents.models.document import Document, DocumentStatus
from modules.documents.services.document_service import DocumentService
from modules.documents.services.document_state_service import DocumentStateService
from modules.signing.models.signature_asset import SignatureAsset
from modules.signing.services.compositor import SignatureCompositor
from modules.storage.services.object_store import ObjectStore
from modules.storage.services.paths import signed_object_path

logger = logging.getLogger(__name__)


class SigningService:

    @staticmethod
    def sign_document(
        session: Session,
        store: ObjectStore,
        public_link: str,
        asset: Optional[SignatureAsset],
        compositor: Optional[SignatureCompositor] = None,
    ) -> Document:
        """
        Public sign flow for the document behind public_link.

        The signed artifact is stored before the status flips; a compositing
        failure leaves the document exactly as it was.
        """
        DocumentService.validate_public_link(public_link)
        if asset is None:
            raise DocumentValidationError("Please create a signature first")

        document = DocumentService.get_for_signing(session, public_link)
        DocumentStateService.ensure_transition(document, DocumentStatus.SIGNED)

        original = DocumentService.read_original(store, document)
        signed = (compositor or SignatureCompositor()).composite(original, asset, document.fields)

        signed_path = call_with_retry(
            store.put, signed_object_path(document.id, document.filename), signed, upsert=True
        )
        logger.info("Signed artifact for document %s stored at %s", document.id, signed_path)

        return DocumentService.mark_signed(session, store, document, signed_path)
