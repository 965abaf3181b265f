import io
import logging
import os
import re
import secrets
from typing import Iterable, List, Optional, Tuple

from PyPDF2 import PdfReader
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from database import utcnow
from modules.common.errors import (
    DocumentError,
    DocumentNotFoundError,
    DocumentValidationError,
    PartialDeletionError,
    PersistenceError,
    StorageError,
)
from modules.common.retry import call_with_retry
from modules.documents.models.document import Document, DocumentStatus
from modules.documents.repositories.document_repository import DocumentRepository
from modules.documents.services.document_state_service import DocumentStateService
from modules.editor.models.geometry import SignatureField
from modules.editor.services.coordinates import clamp
from modules.storage.services.object_store import ObjectStore
from modules.storage.services.paths import original_object_path

logger = logging.getLogger(__name__)

PUBLIC_LINK_BYTES = 32
# token_urlsafe(32) is always 43 characters of the urlsafe alphabet
PUBLIC_LINK_PATTERN = re.compile(r"^[A-Za-z0-9_-]{43}$")

_email_adapter = TypeAdapter(EmailStr)


def new_public_link() -> str:
    return secrets.token_urlsafe(PUBLIC_LINK_BYTES)


def _commit(session: Session, apply) -> None:
    """
    Applies the changes and commits them as one unit. A failed commit is
    rolled back before the error propagates so a retry starts clean.
    """
    try:
        apply()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise


class DocumentService:

    @staticmethod
    def upload_document(
        session: Session,
        store: ObjectStore,
        owner_id: int,
        file_contents: bytes,
        filename: str,
        content_type: str,
        max_file_size: Optional[int] = None,
    ) -> Document:
        """
        Procesa y guarda un documento completo:
        - Valida el archivo
        - Guarda los bytes en el object store
        - Crea registro en BD en pending_setup
        """
        max_file_size = max_file_size or get_settings().max_file_size

        # 1) Validaciones
        page_count = DocumentService._validate_file(file_contents, filename, content_type, max_file_size)

        # 2) Guardar archivo
        path = call_with_retry(store.put, original_object_path(owner_id, filename), file_contents)

        # 3) Crear registro en BD
        document = Document(
            filename=os.path.basename(filename.replace("\\", "/")),
            file_path=path,
            file_size=len(file_contents),
            page_count=page_count,
            status=DocumentStatus.PENDING_SETUP,
            signature_areas=[],
            sender_id=owner_id,
            created_at=utcnow(),
        )
        try:
            DocumentRepository(session).add(document)
        except SQLAlchemyError as exc:
            session.rollback()
            # the record never existed, so the bytes must not outlive it
            DocumentService._discard_objects(store, [path])
            raise PersistenceError(f"Could not save document {filename}: {exc}") from exc

        logger.info("Document %s uploaded by user %s (%d pages)", document.id, owner_id, page_count)
        return document

    @staticmethod
    def _validate_file(file_contents: bytes, filename: str, content_type: str, max_file_size: int) -> int:
        """Valida el archivo subido; devuelve el número de páginas"""

        if content_type != "application/pdf":
            raise DocumentValidationError("File must be a PDF")

        if not filename or not filename.lower().endswith(".pdf"):
            raise DocumentValidationError("File extension must be .pdf")

        if not file_contents:
            raise DocumentValidationError("File is empty")

        if len(file_contents) > max_file_size:
            raise DocumentValidationError(f"Maximum file size is {max_file_size // (1024 * 1024)} MB")

        # Validar integridad del PDF
        try:
            reader = PdfReader(io.BytesIO(file_contents))
            if reader.is_encrypted:
                raise DocumentValidationError("Encrypted PDFs are not supported")
            page_count = len(reader.pages)
        except DocumentValidationError:
            raise
        except Exception as exc:
            raise DocumentValidationError("Invalid or corrupted PDF") from exc

        if page_count == 0:
            raise DocumentValidationError("PDF has no pages")
        return page_count

    @staticmethod
    def list_documents(session: Session, owner_id: int) -> List[Document]:
        return DocumentRepository(session).find_by_owner(owner_id)

    @staticmethod
    def list_signed_documents(session: Session, owner_id: int) -> List[Document]:
        return DocumentRepository(session).find_signed_by_owner(owner_id)

    @staticmethod
    def get_document(session: Session, document_id: int, owner_id: int) -> Document:
        return DocumentRepository(session).get_owned(document_id, owner_id)

    @staticmethod
    def _validate_recipient(recipient_email: Optional[str]) -> str:
        recipient_email = (recipient_email or "").strip()
        if not recipient_email:
            raise DocumentValidationError("Recipient email is required")
        try:
            return str(_email_adapter.validate_python(recipient_email))
        except ValidationError as exc:
            raise DocumentValidationError(f"Invalid recipient email: {recipient_email}") from exc

    @staticmethod
    def _validate_fields(fields: Iterable[SignatureField]) -> List[SignatureField]:
        fields = list(fields)
        if not fields:
            raise DocumentValidationError("Add at least one signature field")
        ids = [f.id for f in fields]
        if len(set(ids)) != len(ids):
            raise DocumentValidationError("Signature field ids must be unique")
        for f in fields:
            if f.width <= 0 or f.height <= 0:
                raise DocumentValidationError(f"Signature field {f.id} has no area")
        return [f.with_rect(clamp(f.rect)) for f in fields]

    @staticmethod
    def send_document(
        session: Session,
        document_id: int,
        owner_id: int,
        recipient_email: Optional[str],
        fields: Iterable[SignatureField],
    ) -> Document:
        """
        Draft/pending_setup -> sent. Recipient, fields, link and status are
        committed together; on failure nothing is kept.
        """
        # checked before touching any store
        recipient = DocumentService._validate_recipient(recipient_email)
        fields = DocumentService._validate_fields(fields)

        document = DocumentRepository(session).get_owned(document_id, owner_id)
        DocumentStateService.ensure_transition(document, DocumentStatus.SENT)
        for f in fields:
            if not 0 <= f.page < document.page_count:
                raise DocumentValidationError(
                    f"Signature field {f.id} is on page {f.page + 1}, "
                    f"document has {document.page_count} pages"
                )

        public_link = new_public_link()

        def apply():
            DocumentStateService.change_document_state(document, DocumentStatus.SENT)
            document.recipient_email = recipient
            document.fields = fields
            document.public_link = public_link

        try:
            call_with_retry(_commit, session, apply)
        except SQLAlchemyError as exc:
            logger.error("Sending document %s failed: %s", document_id, exc)
            raise PersistenceError(f"Could not send document {document_id}") from exc

        logger.info("Document %s sent to %s with %d field(s)", document.id, recipient, len(fields))
        return document

    @staticmethod
    def mark_signed(session: Session, store: ObjectStore, document: Document, signed_path: str) -> Document:
        """
        Sent -> signed. Only called once the signed artifact is stored under
        signed_path; if the commit fails that artifact is removed again.
        """
        DocumentStateService.ensure_transition(document, DocumentStatus.SIGNED)
        document_id = document.id

        def apply():
            DocumentStateService.change_document_state(document, DocumentStatus.SIGNED)
            document.signed_file_path = signed_path
            document.signed_at = utcnow()

        try:
            call_with_retry(_commit, session, apply)
        except SQLAlchemyError as exc:
            logger.error("Marking document %s signed failed, removing %s: %s", document_id, signed_path, exc)
            DocumentService._discard_objects(store, [signed_path])
            raise PersistenceError(f"Could not record the signature for document {document_id}") from exc

        return document

    @staticmethod
    def delete_document(session: Session, store: ObjectStore, document_id: int, owner_id: int) -> None:
        """
        Files first, then the record. If the files cannot be removed nothing
        changes; if the record cannot be removed PartialDeletionError says so.
        """
        repository = DocumentRepository(session)
        document = repository.get_owned(document_id, owner_id)
        paths = [p for p in (document.file_path, document.signed_file_path) if p]

        try:
            call_with_retry(store.delete, paths)
        except StorageError:
            logger.error("Deleting files of document %s failed", document_id)
            raise
        except DocumentError as exc:
            logger.error("Deleting files of document %s failed: %s", document_id, exc)
            raise StorageError(f"Could not delete the files of document {document_id}: {exc}") from exc

        try:
            call_with_retry(_commit, session, lambda: repository.delete(document))
        except SQLAlchemyError as exc:
            logger.critical("Files of document %s removed but its record remains: %s", document_id, exc)
            raise PartialDeletionError(document_id, paths) from exc

        logger.info("Document %s deleted (%d file(s))", document_id, len(paths))

    @staticmethod
    def download_document(session: Session, store: ObjectStore, document_id: int, owner_id: int) -> Tuple[str, bytes]:
        """Signed artifact when there is one, the original otherwise"""
        document = DocumentRepository(session).get_owned(document_id, owner_id)
        if document.signed_file_path:
            return f"signed_{document.filename}", call_with_retry(store.get, document.signed_file_path)
        return document.filename, call_with_retry(store.get, document.file_path)

    @staticmethod
    def preview_url(
        session: Session,
        store: ObjectStore,
        document_id: int,
        owner_id: int,
        ttl_seconds: Optional[int] = None,
    ) -> str:
        document = DocumentRepository(session).get_owned(document_id, owner_id)
        ttl_seconds = ttl_seconds or get_settings().signed_url_ttl_seconds
        return store.signed_url(document.signed_file_path or document.file_path, ttl_seconds)

    @staticmethod
    def read_original(store: ObjectStore, document: Document) -> bytes:
        return call_with_retry(store.get, document.file_path)

    @staticmethod
    def validate_public_link(public_link: str) -> str:
        """Malformed links are rejected without a database round trip."""
        if not public_link or not PUBLIC_LINK_PATTERN.fullmatch(public_link):
            raise DocumentNotFoundError("Link is invalid or has expired")
        return public_link

    @staticmethod
    def get_for_signing(session: Session, public_link: str) -> Document:
        DocumentService.validate_public_link(public_link)
        document = DocumentRepository(session).find_by_public_link(public_link)
        if document is None:
            raise DocumentNotFoundError("Link is invalid or has expired")
        return document

    @staticmethod
    def _discard_objects(store: ObjectStore, paths: List[str]) -> None:
        try:
            store.delete(paths)
        except DocumentError as exc:
            logger.error("Could not remove %s: %s", ", ".join(paths), exc)

