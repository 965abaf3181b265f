from fastapi import APIRouter, UploadFile, File, HTTPException, Depends, Query, Response
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from config import get_settings
from database import get_db
from modules.auth.controllers.auth_controller import get_current_user
from modules.common.errors import DocumentError
from modules.common.http_errors import to_http_exception
from modules.documents.models.user import User
from modules.documents.schemas.document_schemas import (
    DocumentListResponse, DocumentResponse, PreviewUrlResponse, SendRequest, SendResponse, UploadResponse
)
from modules.documents.services.document_service import DocumentService
from modules.editor.models.geometry import Size
from modules.editor.services.page_preview import render_page_preview
from modules.storage.services.object_store import ObjectStore, get_object_store
from modules.storage.services.paths import sanitize_filename

router = APIRouter(
    prefix="/documents",
    tags=["documents"]
)


def sign_url_for(public_link: str) -> str:
    return f"{get_settings().public_base_url.rstrip('/')}/sign/{public_link}"


def content_disposition(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{sanitize_filename(filename)}"'}


@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_user),
):
    contents = await file.read()
    try:
        doc = await run_in_threadpool(
            DocumentService.upload_document,
            db, store, current_user.id, contents, file.filename or "", file.content_type or "",
        )
    except DocumentError as e:
        raise to_http_exception(e)
    return UploadResponse(message="Document uploaded", document=DocumentResponse.model_validate(doc))


@router.get("", response_model=DocumentListResponse)
def list_documents(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Documentos del usuario, más recientes primero"""
    docs = DocumentService.list_documents(db, current_user.id)
    return DocumentListResponse(documents=[DocumentResponse.model_validate(d) for d in docs], total=len(docs))


@router.get("/signed", response_model=DocumentListResponse)
def list_signed_documents(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    docs = DocumentService.list_signed_documents(db, current_user.id)
    return DocumentListResponse(documents=[DocumentResponse.model_validate(d) for d in docs], total=len(docs))


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(document_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    try:
        doc = DocumentService.get_document(db, document_id, current_user.id)
        return DocumentResponse.model_validate(doc)
    except DocumentError as e:
        raise to_http_exception(e)


@router.post("/{document_id}/send", response_model=SendResponse)
def send_document(
    document_id: int,
    payload: SendRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Guarda destinatario y campos de firma y genera el enlace público.
    """
    try:
        doc = DocumentService.send_document(
            db,
            document_id,
            current_user.id,
            payload.recipient_email,
            [area.to_field() for area in payload.signature_areas],
        )
    except DocumentError as e:
        raise to_http_exception(e)
    return SendResponse(
        message="Document sent",
        document=DocumentResponse.model_validate(doc),
        sign_url=sign_url_for(doc.public_link),
    )


@router.get("/{document_id}/download")
def download_document(
    document_id: int,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_user),
):
    """Devuelve el PDF firmado si existe; si no, el original."""
    try:
        filename, data = DocumentService.download_document(db, store, document_id, current_user.id)
    except DocumentError as e:
        raise to_http_exception(e)
    return Response(content=data, media_type="application/pdf", headers=content_disposition(filename))


@router.get("/{document_id}/preview-url", response_model=PreviewUrlResponse)
def preview_url(
    document_id: int,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_user),
):
    ttl = get_settings().signed_url_ttl_seconds
    try:
        url = DocumentService.preview_url(db, store, document_id, current_user.id, ttl)
    except DocumentError as e:
        raise to_http_exception(e)
    return PreviewUrlResponse(url=url, expires_in=ttl)


@router.get("/{document_id}/pages/{page}/render")
async def render_page(
    document_id: int,
    page: int,
    width: int = Query(800, ge=1, le=4000),
    height: int = Query(1000, ge=1, le=4000),
    dpr: float = Query(1.0, gt=0, le=4),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_user),
):
    """PNG of one page (0-based) with the document's signature fields outlined."""
    try:
        # database and storage calls block; only the render itself stays on the loop
        doc = await run_in_threadpool(DocumentService.get_document, db, document_id, current_user.id)
        if not 0 <= page < doc.page_count:
            raise HTTPException(404, f"Page {page} not found")
        data = await run_in_threadpool(DocumentService.read_original, store, doc)
        preview = await render_page_preview(
            data, page, doc.fields, container=Size(width, height), device_pixel_ratio=dpr
        )
    except DocumentError as e:
        raise to_http_exception(e)
    return Response(
        content=preview.png,
        media_type="image/png",
        headers={"X-Render-Placeholder": "true" if preview.placeholder else "false"},
    )


@router.delete("/{document_id}")
def delete_document(
    document_id: int,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_user),
):
    try:
        DocumentService.delete_document(db, store, document_id, current_user.id)
    except DocumentError as e:
        raise to_http_exception(e)
    return {"message": "Document deleted", "document_id": document_id}
