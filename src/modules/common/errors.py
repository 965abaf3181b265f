"""
Error hierarchy shared by the lifecycle manager, the compositor and the
storage adapters. Controllers translate these into HTTP responses.
"""
from typing import Sequence


class DocumentError(Exception):
    """Base class for every error raised by the signing workflow"""


class DocumentNotFoundError(DocumentError):
    """Unknown record, record owned by someone else, or an invalid/expired link"""


class DocumentValidationError(DocumentError):
    """Input rejected before any store is touched"""


class DocumentStateError(DocumentError):
    """Exception for document state transition errors"""


class TransientIOError(DocumentError):
    """Network/storage/render hiccup worth a bounded retry"""


class StorageError(DocumentError):
    """Object store failure that retrying will not fix"""


class StorageConflictError(StorageError):
    """Refused to overwrite an existing object"""


class ObjectNotFoundError(StorageError):
    """The requested object does not exist in the store"""


class PersistenceError(DocumentError):
    """Metadata write failed; the transaction was rolled back"""


class CompositingError(DocumentError):
    """Embedding, drawing or serializing the signed artifact failed"""


class PartialDeletionError(DocumentError):
    """Stored files were removed but the metadata record could not be deleted"""

    def __init__(self, document_id: int, removed_paths: Sequence[str]):
        self.document_id = document_id
        self.removed_paths = list(removed_paths)
        super().__init__(
            f"Files removed but record {document_id} remains; "
            f"delete it manually (removed: {', '.join(self.removed_paths)})"
        )
