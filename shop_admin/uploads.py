"""
Multipart pre-parsing: turns a request body into text fields plus a set of
files already saved to the blob store (``PendingUploads``).

A pending upload is owned by the service that receives it.  The service
either promotes it (its filename ends up in a persisted record) or deletes
it before the request finishes; ``discard_on_error`` wraps a service body
so every failure path deletes the request's files.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterator

from fastapi import Depends, Request
from starlette.datastructures import UploadFile

from shop_admin.dependencies import get_blob_store
from shop_admin.exceptions import ValidationError
from shop_admin.storage import LocalBlobStore, StoredFile, UploadRejected

logger = logging.getLogger(__name__)


@dataclass
class PendingUploads:
    by_field: dict[str, list[StoredFile]] = field(default_factory=dict)

    def add(self, stored: StoredFile) -> None:
        self.by_field.setdefault(stored.field, []).append(stored)

    def get(self, name: str) -> list[StoredFile]:
        return self.by_field.get(name, [])

    def first(self, name: str) -> StoredFile | None:
        files = self.get(name)
        return files[0] if files else None

    def filenames(self, *names: str) -> list[str]:
        """Filenames of the given fields, in field order then upload order."""
        return [stored.filename for name in names for stored in self.get(name)]

    def __iter__(self) -> Iterator[StoredFile]:
        for files in self.by_field.values():
            yield from files

    def __len__(self) -> int:
        return sum(len(files) for files in self.by_field.values())

    async def discard(self, blobs: LocalBlobStore) -> None:
        """Delete every pending file, one at a time."""
        for stored in self:
            await blobs.delete(stored.path)
        if self.by_field:
            logger.info("Discarded %d pending upload(s)", len(self))
        self.by_field.clear()


@asynccontextmanager
async def discard_on_error(uploads: PendingUploads, blobs: LocalBlobStore) -> AsyncIterator[None]:
    """Delete *uploads* if the wrapped block raises, then re-raise."""
    try:
        yield
    except Exception:
        await uploads.discard(blobs)
        raise


@dataclass
class FormPayload:
    fields: dict[str, Any]
    uploads: PendingUploads


class UploadReceiver:
    """
    FastAPI dependency that parses the request body.

    ``files`` maps each accepted file field to the maximum number of files
    it may carry.  JSON bodies are accepted too (no uploads in that case).
    Any rejected file aborts the request with a ``ValidationError`` after
    deleting whatever was already saved for it.
    """

    def __init__(self, kind: str, files: dict[str, int]) -> None:
        self.kind = kind
        self.files = files

    async def __call__(
        self,
        request: Request,
        blobs: LocalBlobStore = Depends(get_blob_store),
    ) -> FormPayload:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            return FormPayload(await self._json_fields(request), PendingUploads())

        form = await request.form()
        fields: dict[str, Any] = {}
        pending = PendingUploads()
        try:
            for name, value in form.multi_items():
                if isinstance(value, UploadFile):
                    if not value.filename:
                        continue
                    await self._save(blobs, pending, name, value)
                elif name in fields:
                    # Repeated text keys collect into a list.
                    previous = fields[name]
                    fields[name] = [*previous, value] if isinstance(previous, list) else [previous, value]
                else:
                    fields[name] = value
        except Exception as exc:
            await pending.discard(blobs)
            if isinstance(exc, UploadRejected):
                raise ValidationError.for_field(exc.field, exc.message) from exc
            raise
        return FormPayload(fields, pending)

    async def _save(
        self,
        blobs: LocalBlobStore,
        pending: PendingUploads,
        name: str,
        upload: UploadFile,
    ) -> None:
        limit = self.files.get(name)
        if limit is None:
            raise UploadRejected(name, f"Unexpected file field '{name}'.")
        if len(pending.get(name)) >= limit:
            raise UploadRejected(name, f"At most {limit} file(s) allowed for '{name}'.")
        pending.add(await blobs.save(upload, self.kind, name))

    @staticmethod
    async def _json_fields(request: Request) -> dict[str, Any]:
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError.for_field("body", "Request body must be valid JSON.") from exc
        if not isinstance(body, dict):
            raise ValidationError.for_field("body", "Request body must be a JSON object.")
        return body
