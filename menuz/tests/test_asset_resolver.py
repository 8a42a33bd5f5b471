"""
Tests for gathering provider inputs from job photos, item scans and the
item's listing image.
"""

from __future__ import annotations

import base64

from menuz.config import config
from menuz.services.asset_resolver import build_inputs, candidate_refs
from menuz.services.blob_store import S3BlobStore
from menuz.services.model_job import ModelJob
from menuz.tests.fakes import UnreachableS3


def _job(refs=None):
    return ModelJob(id="mj-1", restaurantId="r-one", itemId="i-1", referenceImages=list(refs or []))


def _item(scans=None, image=""):
    return {"id": "i-1", "restaurantId": "r-one", "scans": list(scans or []), "image": image}


class TestPriorityAndCap:
    def test_job_refs_then_scans_then_image_newest_first(self):
        job = _job(["https://img.test/j1.jpg", "https://img.test/j2.jpg"])
        item = _item(["https://img.test/s1.jpg", "https://img.test/s2.jpg"], "https://img.test/photo.jpg")

        assert candidate_refs(item, job) == [
            "https://img.test/j2.jpg",
            "https://img.test/j1.jpg",
            "https://img.test/s2.jpg",
            "https://img.test/s1.jpg",
            "https://img.test/photo.jpg",
        ]

    def test_cap_prefers_job_refs_over_scans_over_photo(self, blob_store):
        job = _job(["https://img.test/j1.jpg", "https://img.test/j2.jpg", "https://img.test/j3.jpg"])
        item = _item(["https://img.test/s1.jpg", "https://img.test/s2.jpg"], "https://img.test/photo.jpg")

        inputs = build_inputs(item, job, blob_store=blob_store)

        assert inputs == [
            "https://img.test/j3.jpg",
            "https://img.test/j2.jpg",
            "https://img.test/j1.jpg",
            "https://img.test/s2.jpg",
        ]

    def test_configured_cap(self, blob_store, monkeypatch):
        monkeypatch.setattr(config, "_MESHY_MAX_REFERENCE_IMAGES_RAW", 2)
        job = _job(["https://img.test/j1.jpg", "https://img.test/j2.jpg", "https://img.test/j3.jpg"])

        assert len(build_inputs(_item(), job, blob_store=blob_store)) == 2

    def test_configured_cap_is_clamped(self, monkeypatch):
        monkeypatch.setattr(config, "_MESHY_MAX_REFERENCE_IMAGES_RAW", 50)
        assert config.MESHY_MAX_REFERENCE_IMAGES == 8
        monkeypatch.setattr(config, "_MESHY_MAX_REFERENCE_IMAGES_RAW", 0)
        assert config.MESHY_MAX_REFERENCE_IMAGES == 1

    def test_explicit_max_overrides_config(self, blob_store):
        job = _job(["https://img.test/j1.jpg", "https://img.test/j2.jpg"])
        assert build_inputs(_item(), job, blob_store=blob_store, max_images=1) == ["https://img.test/j2.jpg"]

    def test_deduplicates_by_resolved_value(self, blob_store):
        job = _job(["https://img.test/same.jpg"])
        item = _item(["https://img.test/same.jpg"], "https://img.test/same.jpg")

        assert build_inputs(item, job, blob_store=blob_store) == ["https://img.test/same.jpg"]

    def test_nothing_to_send(self, blob_store):
        assert build_inputs(_item(), _job(), blob_store=blob_store) == []
        assert build_inputs(None, _job(), blob_store=blob_store) == []


class TestRemoteUrls:
    def test_extension_outside_allow_list_is_skipped(self, blob_store):
        job = _job(["https://img.test/anim.gif", "https://img.test/doc.pdf"])
        assert build_inputs(_item(), job, blob_store=blob_store) == []

    def test_url_without_extension_passes(self, blob_store):
        job = _job(["https://img.test/photos/12345?size=large"])
        assert build_inputs(_item(), job, blob_store=blob_store) == ["https://img.test/photos/12345?size=large"]

    def test_extension_check_is_case_insensitive(self, blob_store):
        job = _job(["https://img.test/PHOTO.JPG"])
        assert build_inputs(_item(), job, blob_store=blob_store) == ["https://img.test/PHOTO.JPG"]


class TestStoredReferences:
    def test_inline_mode_embeds_data_uri(self, blob_store):
        ref = blob_store.put("job-images/mj-1/a.png", b"png-bytes", "image/png")

        inputs = build_inputs(_item(), _job([ref]), blob_store=blob_store)

        expected = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode("ascii")
        assert inputs == [expected]

    def test_missing_file_is_skipped(self, blob_store):
        job = _job(["/uploads/job-images/mj-1/gone.jpg", "https://img.test/ok.jpg"])
        assert build_inputs(_item(), job, blob_store=blob_store) == ["https://img.test/ok.jpg"]

    def test_non_image_stored_file_is_skipped(self, blob_store):
        ref = blob_store.put("job-images/mj-1/model.glb", b"glTF", "model/gltf-binary")
        assert build_inputs(_item(), _job([ref]), blob_store=blob_store) == []

    def test_traversal_and_foreign_paths_are_skipped(self, blob_store):
        job = _job(["/uploads/../secrets.jpg", "/static/photo.jpg", "photo.jpg", "   "])
        assert build_inputs(_item(), job, blob_store=blob_store) == []

    def test_url_mode_reexposes_public_url(self, blob_store, monkeypatch):
        monkeypatch.setattr(config, "ASSET_INPUT_MODE", "url")
        monkeypatch.setattr(config, "PUBLIC_BASE_URL", "https://menuz.test")

        inputs = build_inputs(_item(scans=["/uploads/scans/i-1/a.jpg"]), _job(), blob_store=blob_store)

        assert inputs == ["https://menuz.test/uploads/scans/i-1/a.jpg"]

    def test_url_mode_without_public_base_skips_stored(self, blob_store, monkeypatch):
        monkeypatch.setattr(config, "ASSET_INPUT_MODE", "url")
        inputs = build_inputs(_item(scans=["/uploads/scans/i-1/a.jpg"]), _job(), blob_store=blob_store)
        assert inputs == []

    def test_unreachable_object_storage_falls_through_to_remote_image(self):
        s3 = S3BlobStore("menuz-test", client=UnreachableS3())
        job = _job(["/uploads/job-images/mj-1/a.jpg"])
        item = _item(["/uploads/scans/i-1/b.png"], "https://cdn.test/p.jpg")

        assert build_inputs(item, job, blob_store=s3) == ["https://cdn.test/p.jpg"]
