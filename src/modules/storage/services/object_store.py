"""
Object store for original and signed artifacts.

ObjectStore is the narrow contract the lifecycle manager depends on;
LocalObjectStore keeps objects on the local filesystem and hands out
short-lived signed URLs (JWTs) served by the files controller.
"""
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List

from jose import JWTError, jwt

from config import get_settings
from modules.common.errors import (
    ObjectNotFoundError,
    StorageConflictError,
    StorageError,
    TransientIOError,
)

logger = logging.getLogger(__name__)


class ObjectStore(ABC):

    @abstractmethod
    def put(self, path: str, data: bytes, upsert: bool = False) -> str:
        """
        Stores bytes under a path.

        Args:
            path: Key inside the store.
            data: Content.
            upsert: Overwrite an existing object instead of failing.

        Returns:
            The path the object was stored under.
        """
        ...

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Returns the object's bytes; ObjectNotFoundError if absent."""
        ...

    @abstractmethod
    def delete(self, paths: Iterable[str]) -> None:
        """Removes objects. Missing objects are not an error."""
        ...

    @abstractmethod
    def signed_url(self, path: str, ttl_seconds: int) -> str:
        """Temporary URL granting read access to one object."""
        ...

    @abstractmethod
    def resolve_signed_token(self, token: str) -> str:
        """Object path behind a signed URL token."""
        ...


class LocalObjectStore(ObjectStore):

    def __init__(self, root: str, *, secret_key: str, algorithm: str = "HS256", base_url: str = ""):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if target == self._root or self._root not in target.parents:
            raise StorageError(f"Invalid object path: {path!r}")
        return target

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def put(self, path: str, data: bytes, upsert: bool = False) -> str:
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise StorageConflictError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # write then rename, a reader never sees half an object
            fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp, target)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except PermissionError as exc:
            raise StorageError(f"Cannot write {path}: {exc}") from exc
        except OSError as exc:
            raise TransientIOError(f"Cannot write {path}: {exc}") from exc
        logger.debug("Stored %s (%d bytes)", path, len(data))
        return path

    def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except PermissionError as exc:
            raise StorageError(f"Cannot read {path}: {exc}") from exc
        except OSError as exc:
            raise TransientIOError(f"Cannot read {path}: {exc}") from exc

    def delete(self, paths: Iterable[str]) -> None:
        targets: List[Path] = [self._resolve(p) for p in paths]
        for target in targets:
            try:
                target.unlink(missing_ok=True)
            except PermissionError as exc:
                raise StorageError(f"Cannot delete {target}: {exc}") from exc
            except OSError as exc:
                raise TransientIOError(f"Cannot delete {target}: {exc}") from exc
        logger.debug("Deleted %d object(s)", len(targets))

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        if not self.exists(path):
            raise ObjectNotFoundError(f"Object not found: {path}")
        expire = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        token = jwt.encode({"path": path, "exp": expire}, self._secret_key, algorithm=self._algorithm)
        return f"{self._base_url}/files/{token}"

    def resolve_signed_token(self, token: str) -> str:
        """Path behind a signed URL token; expired or forged tokens are not found."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            raise ObjectNotFoundError("Link is invalid or has expired") from exc
        path = payload.get("path")
        if not path:
            raise ObjectNotFoundError("Link is invalid or has expired")
        return path


@lru_cache
def get_object_store() -> ObjectStore:
    settings = get_settings()
    return LocalObjectStore(
        settings.storage_root,
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        base_url=settings.public_base_url,
    )
