import os
import re
import time
import uuid

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")
MAX_NAME_LENGTH = 120


def sanitize_filename(filename: str, default: str = "document.pdf") -> str:
    """
    Reduces a user supplied filename to [A-Za-z0-9._-] so it is safe inside a
    storage path. Directory parts are dropped.
    """
    name = os.path.basename((filename or "").replace("\\", "/"))
    name = _UNSAFE.sub("_", name).strip("._")
    if not name:
        return default
    base, ext = os.path.splitext(name)
    return base[: MAX_NAME_LENGTH - len(ext)] + ext


def original_object_path(owner_id: int, filename: str) -> str:
    """pdfs/{owner}/{millis}-{random}_{name}"""
    return f"pdfs/{owner_id}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}_{sanitize_filename(filename)}"


def signed_object_path(document_id: int, filename: str) -> str:
    """
    signed/{document}/signed_{name}. One path per document, so a retried
    signing overwrites an artifact left behind by a failed attempt.
    """
    return f"signed/{document_id}/signed_{sanitize_filename(filename)}"
