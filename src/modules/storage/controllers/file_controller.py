import mimetypes

from fastapi import APIRouter, Depends, Response
from modules.common.errors import DocumentError
from modules.common.http_errors import to_http_exception
from modules.common.retry import call_with_retry
from modules.storage.services.object_store import ObjectStore, get_object_store

router = APIRouter(
    prefix="/files",
    tags=["files"]
)


@router.get("/{token}")
def get_file(token: str, store: ObjectStore = Depends(get_object_store)):
    """Serves the object behind a short lived signed URL."""
    try:
        path = store.resolve_signed_token(token)
        data = call_with_retry(store.get, path)
    except DocumentError as e:
        raise to_http_exception(e)
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type, headers={"Cache-Control": "private, max-age=60"})
