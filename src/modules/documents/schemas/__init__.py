from .document_schemas import (
    SignatureFieldSchema, DocumentResponse, DocumentListResponse, UploadResponse,
    SendRequest, SendResponse, PreviewUrlResponse, PublicDocumentResponse, SignResponse
)

__all__ = [
    'SignatureFieldSchema', 'DocumentResponse', 'DocumentListResponse', 'UploadResponse',
    'SendRequest', 'SendResponse', 'PreviewUrlResponse', 'PublicDocumentResponse', 'SignResponse'
]
