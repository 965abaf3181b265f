import json
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from database import get_db
from modules.common.errors import DocumentError, DocumentValidationError
from modules.common.http_errors import to_http_exception
from modules.common.retry import call_with_retry
from modules.documents.controllers.document_controller import content_disposition
from modules.documents.schemas.document_schemas import PublicDocumentResponse, SignResponse
from modules.documents.services.document_service import DocumentService
from modules.editor.models.geometry import Size
from modules.editor.services.page_preview import render_page_preview
from modules.signing.models.signature_asset import CaptureMode, SignatureAsset
from modules.signing.services.signature_capture import SignatureCapture
from modules.signing.services.signing_service import SigningService
from modules.storage.services.object_store import ObjectStore, get_object_store

router = APIRouter(
    prefix="/sign",
    tags=["signing"]
)


def parse_strokes(raw: Optional[str]) -> list:
    """strokes form field: JSON list of strokes, each a list of [x, y] surface pixels"""
    try:
        strokes = json.loads(raw or "[]")
        return [[(float(x), float(y)) for x, y in stroke] for stroke in strokes]
    except (ValueError, TypeError) as exc:
        raise DocumentValidationError("Malformed signature strokes") from exc


def build_asset(
    mode: CaptureMode,
    text: Optional[str],
    strokes: Optional[str],
    upload: Optional[bytes] = None,
    upload_name: Optional[str] = None,
) -> SignatureAsset:
    capture = SignatureCapture(mode)
    if mode == CaptureMode.DRAWN:
        for stroke in parse_strokes(strokes):
            capture.add_stroke(stroke)
    elif mode == CaptureMode.TYPED:
        capture.set_text(text or "")
    elif upload is not None:
        capture.choose_file(upload, upload_name)
    return capture.to_asset()


@router.get("/{public_link}", response_model=PublicDocumentResponse)
def get_signing_document(public_link: str, db: Session = Depends(get_db)):
    """Documento a firmar; el enlace público es la única credencial."""
    try:
        doc = DocumentService.get_for_signing(db, public_link)
    except DocumentError as e:
        raise to_http_exception(e)
    return PublicDocumentResponse.model_validate(doc)


@router.get("/{public_link}/file")
def get_signing_file(
    public_link: str,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    try:
        doc = DocumentService.get_for_signing(db, public_link)
        path = doc.signed_file_path or doc.file_path
        data = call_with_retry(store.get, path)
    except DocumentError as e:
        raise to_http_exception(e)
    filename = f"signed_{doc.filename}" if doc.signed_file_path else doc.filename
    return Response(content=data, media_type="application/pdf", headers=content_disposition(filename))


@router.get("/{public_link}/pages/{page}/render")
async def render_signing_page(
    public_link: str,
    page: int,
    width: int = Query(800, ge=1, le=4000),
    height: int = Query(1000, ge=1, le=4000),
    dpr: float = Query(1.0, gt=0, le=4),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    try:
        doc = await run_in_threadpool(DocumentService.get_for_signing, db, public_link)
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


@router.post("/{public_link}", response_model=SignResponse)
async def sign_document(
    public_link: str,
    mode: CaptureMode = Form(CaptureMode.DRAWN),
    text: Optional[str] = Form(None),
    strokes: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """
    Estampa la firma en todos los campos del documento.
    """
    try:
        DocumentService.validate_public_link(public_link)
        upload = await file.read() if file is not None else None
        # capture rendering, compositing, storage and the commit all block
        asset = await run_in_threadpool(
            build_asset, mode, text, strokes, upload, file.filename if file is not None else None
        )
        doc = await run_in_threadpool(SigningService.sign_document, db, store, public_link, asset)
    except DocumentError as e:
        raise to_http_exception(e)
    return SignResponse(message="Document signed", status=doc.status, signed_at=doc.signed_at)
