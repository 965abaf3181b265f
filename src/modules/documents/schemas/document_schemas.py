from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from modules.documents.models.document import DocumentStatus
from modules.editor.models.geometry import SignatureField


class SignatureFieldSchema(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    page: int = Field(ge=0)
    x: float = Field(ge=0, le=1)
    y: float = Field(ge=0, le=1)
    width: float = Field(gt=0, le=1)
    height: float = Field(gt=0, le=1)

    def to_field(self) -> SignatureField:
        return SignatureField(id=self.id, page=self.page, x=self.x, y=self.y, width=self.width, height=self.height)


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    file_path: str
    signed_file_path: Optional[str] = None
    sender_id: int
    recipient_email: Optional[str] = None
    status: DocumentStatus
    signature_areas: List[SignatureFieldSchema] = []
    public_link: Optional[str] = None
    page_count: int
    file_size: int
    created_at: datetime
    signed_at: Optional[datetime] = None


class DocumentListResponse(BaseModel):
    documents: List[DocumentResponse]
    total: int


class UploadResponse(BaseModel):
    message: str
    document: DocumentResponse


class SendRequest(BaseModel):
    # validated by the service so an empty value reports a clear message
    recipient_email: Optional[str] = None
    signature_areas: List[SignatureFieldSchema] = []


class SendResponse(BaseModel):
    message: str
    document: DocumentResponse
    sign_url: str


class PreviewUrlResponse(BaseModel):
    url: str
    expires_in: int


class PublicDocumentResponse(BaseModel):
    """What the signer sees; no storage paths, no owner data"""
    model_config = ConfigDict(from_attributes=True)

    filename: str
    status: DocumentStatus
    page_count: int
    recipient_email: Optional[str] = None
    signature_areas: List[SignatureFieldSchema] = []
    signed_at: Optional[datetime] = None


class SignResponse(BaseModel):
    message: str
    status: DocumentStatus
    signed_at: Optional[datetime] = None
