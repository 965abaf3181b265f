from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, JSON
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from typing import List
from database import Base, utcnow
from modules.editor.models.geometry import SignatureField


class DocumentStatus(PyEnum):
    DRAFT = "draft"
    PENDING_SETUP = "pending_setup"
    SENT = "sent"
    SIGNED = "signed"

class Document(Base):
    __tablename__ = 'documents'

    id = Column(Integer, primary_key=True)
    filename = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    signed_file_path = Column(String, nullable=True)
    file_size = Column(Integer, nullable=False, default=0)
    page_count = Column(Integer, nullable=False, default=1)
    status = Column(
        Enum(DocumentStatus, values_callable=lambda e: [s.value for s in e]),
        nullable=False,
        default=DocumentStatus.PENDING_SETUP,
    )
    recipient_email = Column(String, nullable=True)
    public_link = Column(String(64), nullable=True, unique=True, index=True)
    signature_areas = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    signed_at = Column(DateTime(timezone=True), nullable=True)

    sender_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    sender = relationship("User", back_populates="documents")

    @property
    def fields(self) -> List[SignatureField]:
        return [SignatureField.from_dict(area) for area in (self.signature_areas or [])]

    @fields.setter
    def fields(self, fields: List[SignatureField]) -> None:
        # new list object so the JSON column registers the change
        self.signature_areas = [f.to_dict() for f in fields]
