from __future__ import annotations

import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from casework.core.config import get_settings


@dataclass(frozen=True, slots=True)
class StoredBlob:
    storage_path: str
    size_bytes: int


class BlobStore:
    """Filesystem-backed blob store; paths are relative to `base_dir`."""

    def __init__(self, base_dir: Path, public_base_url: str = "") -> None:
        self._base_dir = base_dir
        self._public_base_url = public_base_url.rstrip("/")

    def download_url(self, key: str) -> str:
        return f"{self._public_base_url}/{key.lstrip('/')}"

    def _root(self) -> Path:
        self._base_dir.mkdir(parents=True, exist_ok=True)
        return self._base_dir.resolve()

    def store_bytes(self, content: bytes, *, prefix: str, filename: str) -> StoredBlob:
        extension = Path(filename or "file.bin").suffix or ".bin"
        storage_path = f"{prefix.strip('/')}/{uuid.uuid4()}{extension}"
        target = self._resolve(storage_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return StoredBlob(storage_path=storage_path, size_bytes=len(content))

    def get_bytes(self, storage_path: str) -> bytes:
        target = self._resolve(storage_path)
        if not target.exists():
            raise FileNotFoundError(f"blob not found: {storage_path}")
        return target.read_bytes()

    def delete(self, storage_path: str) -> None:
        self._resolve(storage_path).unlink(missing_ok=True)

    def _resolve(self, storage_path: str) -> Path:
        root = self._root()
        target = (root / storage_path).resolve()
        if root not in target.parents:
            raise ValueError(f"storage path escapes blob root: {storage_path}")
        return target


@lru_cache
def get_blob_store() -> BlobStore:
    settings = get_settings()
    return BlobStore(Path(settings.storage_dir), settings.storage_public_base_url)
