from .document_service import DocumentService
from .document_state_service import DocumentStateService

__all__ = ['DocumentService', 'DocumentStateService']
