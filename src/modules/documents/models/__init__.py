from .document import Document, DocumentStatus
from .user import User

__all__ = ['Document', 'DocumentStatus', 'User']
