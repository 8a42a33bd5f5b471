"""
Tests for the blob store backends: reference parsing, local writes and
how the S3 backend behaves when the endpoint cannot be reached.
"""

from __future__ import annotations

import pytest

from menuz.services.blob_store import BlobStoreError, S3BlobStore, key_from_ref
from menuz.tests.fakes import BlockedBlobStore, UnreachableS3


class TestRefs:
    @pytest.mark.parametrize("ref, key", [
        ("/uploads/models/a.glb", "models/a.glb"),
        ("/uploads/job-images/mj-1/x.png", "job-images/mj-1/x.png"),
        ("/uploads/../db.json", None),
        ("/uploads/models/../../etc/passwd", None),
        ("/uploads/", None),
        ("https://cdn.test/a.png", None),
        (None, None),
    ])
    def test_key_from_ref(self, ref, key):
        assert key_from_ref(ref) == key


class TestLocalBlobStore:
    def test_put_get_delete(self, blob_store):
        ref = blob_store.put("scans/i-1/a.jpg", b"jpeg", "image/jpeg")

        assert ref == "/uploads/scans/i-1/a.jpg"
        assert blob_store.read_ref(ref) == b"jpeg"
        assert blob_store.delete_prefix("scans/i-1") == {"deleted": 1, "errors": []}
        assert blob_store.get("scans/i-1/a.jpg") is None

    def test_write_failure_raises_blob_store_error(self, tmp_path):
        blocked = BlockedBlobStore(tmp_path / "uploads", ".usdz")

        with pytest.raises(BlobStoreError) as exc_info:
            blocked.put("models/x.usdz", b"usdz")
        assert exc_info.value.key == "models/x.usdz"
        assert blocked.put("models/x.glb", b"glb") == "/uploads/models/x.glb"


class TestS3Unreachable:
    @pytest.fixture
    def s3(self):
        return S3BlobStore("menuz-test", client=UnreachableS3())

    def test_get_is_none(self, s3):
        assert s3.get("job-images/mj-1/a.jpg") is None

    def test_put_raises_blob_store_error(self, s3):
        with pytest.raises(BlobStoreError):
            s3.put("models/a.glb", b"glb", "model/gltf-binary")

    def test_presign_is_none(self, s3):
        assert s3.presign("models/a.glb") is None

    def test_delete_prefix_reports_instead_of_raising(self, s3):
        result = s3.delete_prefix("scans/i-1")
        assert result["deleted"] == 0
        assert result["errors"][0]["key"] == "scans/i-1/"
