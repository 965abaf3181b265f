from fastapi import HTTPException, status

from modules.common.errors import (
    CompositingError,
    DocumentError,
    DocumentNotFoundError,
    DocumentStateError,
    DocumentValidationError,
    ObjectNotFoundError,
    PartialDeletionError,
    PersistenceError,
    StorageConflictError,
    StorageError,
    TransientIOError,
)

# first match wins, so subclasses come before their bases
_STATUS_CODES = (
    (DocumentNotFoundError, status.HTTP_404_NOT_FOUND),
    (ObjectNotFoundError, status.HTTP_404_NOT_FOUND),
    (StorageConflictError, status.HTTP_409_CONFLICT),
    (DocumentValidationError, status.HTTP_400_BAD_REQUEST),
    (DocumentStateError, status.HTTP_409_CONFLICT),
    (CompositingError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TransientIOError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (StorageError, status.HTTP_502_BAD_GATEWAY),
    (PartialDeletionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_exception(exc: DocumentError) -> HTTPException:
    for error_type, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            break
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    detail = str(exc)
    if isinstance(exc, PartialDeletionError):
        detail = {
            "error": "partial_deletion",
            "message": str(exc),
            "document_id": exc.document_id,
            "removed_paths": exc.removed_paths,
        }
    return HTTPException(status_code=code, detail=detail)
