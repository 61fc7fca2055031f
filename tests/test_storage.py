"""
Blob store and pending-upload tests.
"""
import io

import pytest
from starlette.datastructures import Headers, UploadFile

from shop_admin.storage import AVATARS, PRODUCTS, UploadRejected
from shop_admin.uploads import PendingUploads, discard_on_error
from tests.fakes import RecordingBlobStore


def _upload(filename: str, data: bytes, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.mark.asyncio
async def test_save_writes_file_under_kind(blobs: RecordingBlobStore):
    stored = await blobs.save(_upload("photo.JPG", b"jpeg-bytes", "image/jpeg"), PRODUCTS, "images")

    assert stored.field == "images"
    assert stored.filename.startswith("images-")
    assert stored.filename.endswith(".jpg")
    assert stored.path == blobs.root / PRODUCTS / stored.filename
    assert stored.path.read_bytes() == b"jpeg-bytes"


@pytest.mark.asyncio
async def test_save_without_extension_guesses_from_content_type(blobs: RecordingBlobStore):
    stored = await blobs.save(_upload("blob", b"png", "image/png"), AVATARS, "profile_picture")
    assert stored.filename.endswith(".png")


@pytest.mark.asyncio
async def test_save_rejects_disallowed_type(blobs: RecordingBlobStore):
    with pytest.raises(UploadRejected) as exc_info:
        await blobs.save(_upload("doc.pdf", b"%PDF", "application/pdf"), AVATARS, "profile_picture")
    assert exc_info.value.field == "profile_picture"
    assert list((blobs.root / AVATARS).iterdir()) == []


@pytest.mark.asyncio
async def test_save_rejects_oversized_file(blobs: RecordingBlobStore):
    with pytest.raises(UploadRejected):
        await blobs.save(_upload("big.png", b"x" * (blobs.max_size + 1), "image/png"), PRODUCTS, "images")
    assert list((blobs.root / PRODUCTS).iterdir()) == []


def test_path_for_keeps_only_the_final_component(blobs: RecordingBlobStore):
    assert blobs.path_for(PRODUCTS, "../../etc/passwd") == blobs.root / PRODUCTS / "passwd"


@pytest.mark.asyncio
async def test_delete_missing_file_does_not_raise(blobs: RecordingBlobStore):
    await blobs.delete(blobs.path_for(AVATARS, "never-existed.png"))
    await blobs.delete(None)
    assert blobs.deleted_names == ["never-existed.png"]


@pytest.mark.asyncio
async def test_discard_on_error_deletes_pending_and_reraises(blobs: RecordingBlobStore, stage_upload):
    uploads = stage_upload(PRODUCTS, ("product_image", "a.png"), ("images", "b.png"))

    with pytest.raises(RuntimeError):
        async with discard_on_error(uploads, blobs):
            raise RuntimeError("write failed")

    assert sorted(blobs.deleted_names) == ["a.png", "b.png"]
    assert len(uploads) == 0
    assert list((blobs.root / PRODUCTS).iterdir()) == []


@pytest.mark.asyncio
async def test_discard_on_error_keeps_files_on_success(blobs: RecordingBlobStore, stage_upload):
    uploads = stage_upload(AVATARS, ("profile_picture", "keep.png"))

    async with discard_on_error(uploads, blobs):
        pass

    assert blobs.deleted == []
    assert blobs.path_for(AVATARS, "keep.png").exists()


def test_pending_uploads_filenames_follow_field_order(stage_upload):
    uploads = stage_upload(
        PRODUCTS,
        ("images", "g1.png"),
        ("product_image", "cover.png"),
        ("images", "g2.png"),
    )
    assert uploads.filenames("product_image", "images") == ["cover.png", "g1.png", "g2.png"]
    assert uploads.first("product_image").filename == "cover.png"
    assert uploads.first("missing") is None
    assert len(PendingUploads()) == 0
