"""
Blob storage collaborator for signature images.

``BlobStorage`` is the interface the execution session writes through.  Two
implementations ship: ``InMemoryBlobStorage`` for tests and embedded use,
and ``LocalDirectoryBlobStorage`` for single-host deployments.  A remote
object-store client implements the same five methods.

Keys are caller-chosen and stable, so writing the same key twice replaces
the object instead of creating a second one.
"""

from __future__ import annotations

import hashlib
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from uuid import UUID

from sla_kernel.exceptions import BlobStorageError
from sla_kernel.logging_config import get_logger

logger = get_logger("services.blob_storage")


@dataclass(frozen=True)
class StoredBlob:
    key: str
    reference: str
    size: int
    content_type: str


def signature_key(contract_id: UUID, image: bytes, prefix: str = "signatures") -> str:
    """Stable key for a signature image: same contract and bytes, same key."""
    digest = hashlib.sha256(image).hexdigest()[:16]
    return f"{prefix}/{contract_id}/{digest}.png"


class BlobStorage(ABC):
    """Abstract blob store."""

    @abstractmethod
    def put(self, key: str, data: bytes, *, content_type: str) -> StoredBlob:
        """Store ``data`` under ``key``, replacing any existing object."""
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the stored bytes; BlobStorageError if absent."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete the object; False if it did not exist."""
        ...

    @abstractmethod
    def reference_for(self, key: str) -> str:
        """Retrievable reference persisted on the contract."""
        ...


class InMemoryBlobStorage(BlobStorage):
    """Dict-backed store.  Thread-safe."""

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes, *, content_type: str) -> StoredBlob:
        with self._lock:
            self._objects[key] = (bytes(data), content_type)
        logger.debug("blob_stored", extra={"key": key, "size": len(data)})
        return StoredBlob(key, self.reference_for(key), len(data), content_type)

    def get(self, key: str) -> bytes:
        with self._lock:
            stored = self._objects.get(key)
        if stored is None:
            raise BlobStorageError("blob_get", f"no object under key {key!r}")
        return stored[0]

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._objects

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._objects.pop(key, None) is not None

    def reference_for(self, key: str) -> str:
        return f"memory://{key}"

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)


class LocalDirectoryBlobStorage(BlobStorage):
    """Stores objects as files below ``root``; keys map to relative paths."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise BlobStorageError("blob_key", f"invalid key {key!r}")
        return self.root.joinpath(*relative.parts)

    def put(self, key: str, data: bytes, *, content_type: str) -> StoredBlob:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError as exc:
            logger.error("blob_store_failed", extra={"key": key}, exc_info=True)
            raise BlobStorageError("signature_upload", str(exc)) from exc
        logger.debug("blob_stored", extra={"key": key, "size": len(data)})
        return StoredBlob(key, self.reference_for(key), len(data), content_type)

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise BlobStorageError("blob_get", str(exc)) from exc

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as exc:
            raise BlobStorageError("blob_delete", str(exc)) from exc
        return True

    def reference_for(self, key: str) -> str:
        return self._path(key).resolve().as_uri()
