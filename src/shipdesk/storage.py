"""Filesystem-backed object store."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from shipdesk.exceptions import ObjectStoreError
from shipdesk.protocols import StoredObject

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
_META_SUFFIX = ".meta.json"


class FileSystemObjectStore:
    """Object store keeping each blob as a file under ``root``.

    The content type lives in a sidecar ``<key>.meta.json`` file.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root) or path == self.root:
            raise ObjectStoreError(f"Invalid object key: {key!r}")
        return path

    @staticmethod
    def _meta_path(path: Path) -> Path:
        return path.with_name(path.name + _META_SUFFIX)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            self._meta_path(path).write_text(
                json.dumps({"content_type": content_type})
            )

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise ObjectStoreError(f"Failed to write {key}: {exc}") from exc
        logger.debug("Stored %s (%d bytes)", key, len(data))

    async def get(self, key: str) -> StoredObject | None:
        path = self._path_for(key)

        def _read() -> StoredObject | None:
            if not path.is_file():
                return None
            meta_path = self._meta_path(path)
            content_type = DEFAULT_CONTENT_TYPE
            if meta_path.is_file():
                meta = json.loads(meta_path.read_text())
                content_type = meta.get("content_type", DEFAULT_CONTENT_TYPE)
            return StoredObject(data=path.read_bytes(), content_type=content_type)

        try:
            return await asyncio.to_thread(_read)
        except OSError as exc:
            raise ObjectStoreError(f"Failed to read {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        path = self._path_for(key)

        def _remove() -> None:
            path.unlink(missing_ok=True)
            self._meta_path(path).unlink(missing_ok=True)

        try:
            await asyncio.to_thread(_remove)
        except OSError as exc:
            raise ObjectStoreError(f"Failed to delete {key}: {exc}") from exc
