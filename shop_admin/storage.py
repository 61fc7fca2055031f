"""
Local-disk blob store for uploaded images.

Files live under ``<root>/<kind>/<filename>`` where *kind* is ``avatars`` or
``products``.  Records reference blobs by bare filename only; ``path_for``
resolves a filename back to its location on disk.

Deletion is best-effort: a failed unlink is logged and swallowed so that
blob cleanup can never abort the request that triggered it.  Blocking disk
calls run in a worker thread via ``asyncio.to_thread``.
"""
import asyncio
import logging
import mimetypes
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path

from starlette.datastructures import UploadFile

logger = logging.getLogger(__name__)

AVATARS = "avatars"
PRODUCTS = "products"


@dataclass(frozen=True)
class StoredFile:
    """An upload already written to disk, not yet referenced by a record."""

    field: str
    filename: str
    path: Path


class UploadRejected(Exception):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class LocalBlobStore:
    def __init__(
        self,
        root: str | Path,
        max_size: int,
        allowed_types: list[str] | tuple[str, ...],
    ) -> None:
        self.root = Path(root)
        self.max_size = max_size
        self.allowed_types = tuple(allowed_types)

    def ensure_dirs(self) -> None:
        for kind in (AVATARS, PRODUCTS):
            (self.root / kind).mkdir(parents=True, exist_ok=True)

    def path_for(self, kind: str, filename: str) -> Path:
        # Only the final component is honoured; references can't escape root.
        return self.root / kind / Path(filename).name

    def _new_filename(self, field: str, upload: UploadFile) -> str:
        ext = Path(upload.filename or "").suffix.lower()
        if not ext and upload.content_type:
            ext = mimetypes.guess_extension(upload.content_type) or ""
        return f"{field}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"

    async def save(self, upload: UploadFile, kind: str, field: str) -> StoredFile:
        """
        Write *upload* under *kind* and return its descriptor.

        Raises ``UploadRejected`` for a disallowed content type or a file
        larger than ``max_size``; nothing is written in that case.
        """
        if upload.content_type not in self.allowed_types:
            raise UploadRejected(
                field, "Only image files (JPEG, PNG, GIF, WEBP) are allowed."
            )
        data = await upload.read(self.max_size + 1)
        if len(data) > self.max_size:
            raise UploadRejected(
                field, f"File exceeds the {self.max_size // (1024 * 1024)} MB size limit."
            )

        filename = self._new_filename(field, upload)
        path = self.path_for(kind, filename)
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        logger.debug("Stored upload %s (%d bytes)", path, len(data))
        return StoredFile(field=field, filename=filename, path=path)

    async def delete(self, path: str | Path | None) -> None:
        """Remove the file at *path*; failures are logged, never raised."""
        if not path:
            return
        try:
            await asyncio.to_thread(os.remove, path)
            logger.debug("Deleted blob %s", path)
        except FileNotFoundError:
            logger.warning("Blob %s was already missing", path)
        except OSError as exc:
            logger.warning("Error deleting blob %s: %s", path, exc)
