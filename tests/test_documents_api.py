import asyncio
import json
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from modules.auth.services.auth_service import AuthService
from modules.documents.models.user import User
from modules.documents.services.document_service import DocumentService
from modules.signing.services.signing_service import SigningService
from modules.storage.services.object_store import LocalObjectStore, get_object_store

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(str(tmp_path), secret_key="test-secret", base_url="http://testserver")


@pytest.fixture
def client(store):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_user(email="owner@mail.com", password="owner123", id=None):
    with TestingSessionLocal() as session:
        user = User(id=id, name="Owner", email=email, password_hash=AuthService.get_password_hash(password), is_active=True)
        session.add(user)
        session.commit()
        return user.id


def auth_headers(user_id=1):
    return {"Authorization": f"Bearer {AuthService.create_access_token(user_id)}"}


def upload(client, pdf, filename="contrato.pdf", headers=None, content_type="application/pdf"):
    files = {"file": (filename, pdf, content_type)}
    return client.post("/documents/upload", files=files, headers=headers or auth_headers())


def send(client, doc_id, email="firmante@mail.com", areas=None, headers=None):
    areas = [{"id": "f1", "page": 0, "x": 0.1, "y": 0.1, "width": 0.2, "height": 0.05}] if areas is None else areas
    return client.post(
        f"/documents/{doc_id}/send",
        json={"recipient_email": email, "signature_areas": areas},
        headers=headers or auth_headers(),
    )


# --- auth -----------------------------------------------------------------

def test_login_and_me(client):
    create_user()
    resp = client.post("/auth/login", json={"email": "owner@mail.com", "password": "owner123"})
    assert resp.status_code == 200, resp.text
    token = resp.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "owner@mail.com"


def test_login_wrong_password(client):
    create_user()
    resp = client.post("/auth/login", json={"email": "owner@mail.com", "password": "nope"})
    assert resp.status_code == 401


def test_login_ignores_email_case(client):
    create_user()
    resp = client.post("/auth/login", json={"email": "Owner@Mail.com", "password": "owner123"})
    assert resp.status_code == 200
    assert resp.json()["user_id"] == 1
    assert resp.json()["expires_in"] > 0


def test_expired_token_rejected(client):
    create_user()
    token = AuthService.create_access_token(1, timedelta(seconds=-1))
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_documents_require_token(client):
    assert client.get("/documents").status_code in {401, 403}
    assert client.get("/documents", headers={"Authorization": "Bearer garbage"}).status_code == 401


# --- owner routes -----------------------------------------------------------

def test_upload_non_pdf_rejected(client):
    create_user()
    resp = upload(client, b"This is not a PDF docx", "documento.docx",
                  content_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document")
    assert resp.status_code == 400
    assert "pdf" in resp.text.lower()


def test_upload_pdf_accepted(client, pdf_bytes):
    create_user()
    resp = upload(client, pdf_bytes)
    assert resp.status_code == 200, resp.text
    doc = resp.json()["document"]
    assert doc["status"] == "pending_setup"
    assert doc["filename"] == "contrato.pdf"
    assert doc["signature_areas"] == []
    assert doc["public_link"] is None

    listed = client.get("/documents", headers=auth_headers()).json()
    assert listed["total"] == 1
    assert listed["documents"][0]["id"] == doc["id"]


def test_send_validation_errors(client, pdf_bytes):
    create_user()
    doc_id = upload(client, pdf_bytes).json()["document"]["id"]

    assert send(client, doc_id, email="").status_code == 400
    assert send(client, doc_id, areas=[]).status_code == 400
    out_of_page = [{"id": "f1", "page": 5, "x": 0.1, "y": 0.1, "width": 0.2, "height": 0.05}]
    assert send(client, doc_id, areas=out_of_page).status_code == 400
    bad_geometry = [{"id": "f1", "page": 0, "x": 1.5, "y": 0.1, "width": 0.2, "height": 0.05}]
    assert send(client, doc_id, areas=bad_geometry).status_code == 422

    assert client.get(f"/documents/{doc_id}", headers=auth_headers()).json()["status"] == "pending_setup"


def test_other_users_document_is_not_found(client, pdf_bytes):
    create_user()
    other_id = create_user(email="other@mail.com")
    doc_id = upload(client, pdf_bytes).json()["document"]["id"]
    other = auth_headers(other_id)

    assert client.get(f"/documents/{doc_id}", headers=other).status_code == 404
    assert client.delete(f"/documents/{doc_id}", headers=other).status_code == 404
    assert send(client, doc_id, headers=other).status_code == 404
    assert client.get(f"/documents/{doc_id}", headers=auth_headers()).status_code == 200


def test_render_page_with_fields(client, pdf_bytes):
    create_user()
    doc_id = upload(client, pdf_bytes).json()["document"]["id"]
    send(client, doc_id)

    resp = client.get(f"/documents/{doc_id}/pages/0/render?width=400&height=600", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["x-render-placeholder"] == "false"
    assert resp.content.startswith(b"\x89PNG")

    assert client.get(f"/documents/{doc_id}/pages/3/render", headers=auth_headers()).status_code == 404


def test_preview_url_serves_file(client, pdf_bytes):
    create_user()
    doc_id = upload(client, pdf_bytes).json()["document"]["id"]

    resp = client.get(f"/documents/{doc_id}/preview-url", headers=auth_headers())
    assert resp.status_code == 200
    body = resp.json()
    assert body["expires_in"] == 300

    served = client.get(body["url"])
    assert served.status_code == 200
    assert served.content == pdf_bytes
    assert client.get("/files/not-a-token").status_code == 404


def test_delete_document(client, store, pdf_bytes):
    create_user()
    doc = upload(client, pdf_bytes).json()["document"]

    resp = client.delete(f"/documents/{doc['id']}", headers=auth_headers())
    assert resp.status_code == 200
    assert not store.exists(doc["file_path"])
    assert client.get(f"/documents/{doc['id']}", headers=auth_headers()).status_code == 404


# --- public sign flow -------------------------------------------------------

def test_full_signing_flow(client, pdf_bytes):
    create_user()
    doc_id = upload(client, pdf_bytes, "acuerdo.pdf").json()["document"]["id"]

    sent = send(client, doc_id)
    assert sent.status_code == 200, sent.text
    link = sent.json()["document"]["public_link"]
    assert sent.json()["sign_url"].endswith(f"/sign/{link}")

    public = client.get(f"/sign/{link}")
    assert public.status_code == 200
    assert public.json()["status"] == "sent"
    assert "file_path" not in public.json()
    assert client.get(f"/sign/{link}/file").content == pdf_bytes
    assert client.get(f"/sign/{link}/pages/0/render").status_code == 200

    # nothing captured yet
    assert client.post(f"/sign/{link}", data={"mode": "typed", "text": "   "}).status_code == 400

    strokes = json.dumps([[[20, 75], [120, 40], [380, 110]]])
    signed = client.post(f"/sign/{link}", data={"mode": "drawn", "strokes": strokes})
    assert signed.status_code == 200, signed.text
    assert signed.json()["status"] == "signed"

    again = client.post(f"/sign/{link}", data={"mode": "typed", "text": "Ada"})
    assert again.status_code == 409

    signed_list = client.get("/documents/signed", headers=auth_headers()).json()
    assert [d["id"] for d in signed_list["documents"]] == [doc_id]

    download = client.get(f"/documents/{doc_id}/download", headers=auth_headers())
    assert download.status_code == 200
    assert download.content != pdf_bytes
    assert 'filename="signed_acuerdo.pdf"' in download.headers["content-disposition"]


def test_uploaded_signature_with_bad_codec(client, pdf_bytes, make_image):
    create_user()
    doc_id = upload(client, pdf_bytes).json()["document"]["id"]
    link = send(client, doc_id).json()["document"]["public_link"]

    gif = make_image(fmt="GIF", mode="P", color=1)
    resp = client.post(f"/sign/{link}", data={"mode": "uploaded"}, files={"file": ("firma.gif", gif, "image/gif")})
    assert resp.status_code == 422
    assert client.get(f"/sign/{link}").json()["status"] == "sent"


@pytest.mark.parametrize("link", ["short", "a" * 43])
def test_unknown_or_malformed_link(client, link):
    assert client.get(f"/sign/{link}").status_code == 404
    assert client.post(f"/sign/{link}", data={"mode": "typed", "text": "Ada"}).status_code == 404


def on_event_loop():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def record_loop_use(monkeypatch, owner, name, calls):
    original = getattr(owner, name)

    def wrapper(*args, **kwargs):
        calls.append((name, on_event_loop()))
        return original(*args, **kwargs)

    monkeypatch.setattr(owner, name, staticmethod(wrapper))


def test_blocking_calls_run_off_the_event_loop(client, pdf_bytes, monkeypatch):
    create_user()
    doc_id = upload(client, pdf_bytes).json()["document"]["id"]
    link = send(client, doc_id).json()["document"]["public_link"]

    calls = []
    record_loop_use(monkeypatch, DocumentService, "read_original", calls)
    record_loop_use(monkeypatch, DocumentService, "get_for_signing", calls)
    record_loop_use(monkeypatch, SigningService, "sign_document", calls)

    assert client.get(f"/documents/{doc_id}/pages/0/render", headers=auth_headers()).status_code == 200
    assert client.get(f"/sign/{link}/pages/0/render").status_code == 200
    signed = client.post(f"/sign/{link}", data={"mode": "typed", "text": "Ada"})
    assert signed.status_code == 200, signed.text

    names = {name for name, _ in calls}
    assert names == {"read_original", "get_for_signing", "sign_document"}
    assert [name for name, on_loop in calls if on_loop] == []
