from typing import List, Optional
from sqlalchemy.orm import Session

from modules.common.errors import DocumentNotFoundError
from modules.documents.models.document import Document, DocumentStatus


class DocumentRepository:
    def __init__(self, db_session: Session):
        self.db = db_session

    def add(self, document: Document) -> Document:
        self.db.add(document)
        self.db.commit()
        self.db.refresh(document)
        return document

    def get(self, document_id: int) -> Optional[Document]:
        return self.db.get(Document, document_id)

    def get_owned(self, document_id: int, owner_id: int) -> Document:
        """Documents owned by someone else are reported as missing."""
        document = self.db.get(Document, document_id)
        if document is None or document.sender_id != owner_id:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    def find_by_owner(self, owner_id: int) -> List[Document]:
        return (
            self.db
            .query(Document)
            .filter(Document.sender_id == owner_id)
            .order_by(Document.created_at.desc(), Document.id.desc())
            .all()
        )

    def find_signed_by_owner(self, owner_id: int) -> List[Document]:
        return (
            self.db
            .query(Document)
            .filter(Document.sender_id == owner_id, Document.status == DocumentStatus.SIGNED)
            .order_by(Document.signed_at.desc(), Document.id.desc())
            .all()
        )

    def find_by_public_link(self, public_link: str) -> Optional[Document]:
        return (
            self.db
            .query(Document)
            .filter(Document.public_link == public_link)
            .one_or_none()
        )

    def delete(self, document: Document) -> None:
        """Marks the record for deletion; the caller commits."""
        self.db.delete(document)
