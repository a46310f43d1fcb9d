import os

import pytest

from errors import FileTooLarge, UploadFailure, ValidationError
from uploads import LocalImageStore


def test_save_and_delete(tmp_path):
    store = LocalImageStore(str(tmp_path), "/uploads/")

    saved = store.save("cat.jpeg", "image/jpeg", b"jpeg-bytes")

    assert saved["public_id"].startswith("reviews/") and saved["public_id"].endswith(".jpg")
    assert saved["url"] == f"/uploads/{saved['public_id']}"
    path = tmp_path.joinpath(*saved["public_id"].split("/"))
    assert path.read_bytes() == b"jpeg-bytes"

    store.delete(saved["public_id"])
    assert not path.exists()
    store.delete(saved["public_id"])


def test_rejects_non_images(tmp_path):
    with pytest.raises(ValidationError):
        LocalImageStore(str(tmp_path), "/uploads").save("notes.txt", "text/plain", b"hello")


def test_size_limit(tmp_path):
    with pytest.raises(FileTooLarge):
        LocalImageStore(str(tmp_path), "/uploads", max_bytes=4).save("a.png", "image/png", b"12345")


def test_storage_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file where the directory should be")

    with pytest.raises(UploadFailure):
        LocalImageStore(os.path.join(str(blocker), "nested"), "/uploads").save("a.png", "image/png", b"png")


def test_rejects_unknown_image_type(tmp_path):
    with pytest.raises(ValidationError):
        LocalImageStore(str(tmp_path), "/uploads").save("evil.html", "image/x-evil", b"<script>alert(1)</script>")
    assert not (tmp_path / "reviews").exists()


def test_extension_follows_content_type(tmp_path):
    saved = LocalImageStore(str(tmp_path), "/uploads").save("page.html", "image/png", b"png")
    assert saved["public_id"].endswith(".png")
