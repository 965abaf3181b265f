from .compositor import SignatureCompositor, field_to_pdf_rect
from .pdf_document import PdfDocumentModel, ImageRef
from .signature_capture import SignatureCapture

__all__ = ['SignatureCompositor', 'field_to_pdf_rect', 'PdfDocumentModel', 'ImageRef', 'SignatureCapture']
