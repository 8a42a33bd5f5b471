"""
Tests for the persistence layer and the timestamp helpers it relies on.

The PostgreSQL class only runs when DATABASE_URL is set:
    DATABASE_URL=postgresql://... python -m pytest menuz/tests/test_store.py -v
"""

from __future__ import annotations

import uuid

import pytest

from menuz import db
from menuz.services.model_job import JobStatus, ModelJob
from menuz.services.store import ConcurrentUpdateError, LocalStore, PostgresStore
from menuz.utils.helpers import next_timestamp, normalize_slug, now_iso


def _job(job_id="mj-1", item_id="i-1", restaurant_id="r-1"):
    now = now_iso()
    return ModelJob(
        id=job_id,
        restaurantId=restaurant_id,
        itemId=item_id,
        sourceType="scanner",
        provider="manual",
        status=JobStatus.ENVIADO,
        referenceImages=["/uploads/job-images/x/a.png"],
        createdAt=now,
        updatedAt=now,
    )


class TestLocalStore:
    def test_survives_reload(self, tmp_path):
        path = tmp_path / "db.json"
        first = LocalStore(path)
        first.create_restaurant({"id": "r-1", "name": "Casa", "slug": "casa", "description": ""})
        first.insert_job(_job())

        second = LocalStore(path)

        assert second.get_restaurant_by_slug("casa")["id"] == "r-1"
        job = second.get_job("mj-1")
        assert job.referenceImages == ["/uploads/job-images/x/a.png"]
        assert job.status == JobStatus.ENVIADO

    def test_orders_and_restaurant_edits_survive_reload(self, tmp_path):
        path = tmp_path / "db.json"
        first = LocalStore(path)
        first.create_restaurant({"id": "r-1", "name": "Casa", "slug": "casa", "description": ""})
        first.update_restaurant({"id": "r-1", "name": "Casa Nova", "slug": "casa-nova", "description": "x"})
        first.create_order({
            "id": "o-1", "restaurantId": "r-1", "table": "3", "items": [], "total": 0,
            "status": "novo", "createdAt": now_iso(),
        })
        order = first.get_order("o-1")
        order["status"] = "aceito"
        first.update_order(order)

        second = LocalStore(path)

        assert second.get_restaurant_by_slug("casa") is None
        assert second.get_restaurant_by_slug("casa-nova")["name"] == "Casa Nova"
        assert [o["status"] for o in second.list_orders("r-1")] == ["aceito"]
        assert second.list_orders("r-2") == []

    def test_reads_are_copies(self, store):
        store.create_item({"id": "i-1", "restaurantId": "r-1", "name": "Soup", "scans": []})
        item = store.get_item("i-1")
        item["scans"].append("/uploads/scans/i-1/x.jpg")
        assert store.get_item("i-1")["scans"] == []

    def test_compare_and_swap(self, store):
        job = store.insert_job(_job())
        stale = job.updatedAt

        job.notes = "first"
        job.updatedAt = next_timestamp(stale)
        store.update_job(job, expected_updated_at=stale)

        loser = store.get_job("mj-1")
        loser.notes = "second"
        with pytest.raises(ConcurrentUpdateError):
            store.update_job(loser, expected_updated_at=stale)
        assert store.get_job("mj-1").notes == "first"

    def test_update_of_deleted_job_conflicts(self, store):
        job = store.insert_job(_job())
        store.delete_job(job.id)
        with pytest.raises(ConcurrentUpdateError):
            store.update_job(job, expected_updated_at=job.updatedAt)

    def test_delete_jobs_for_item(self, store):
        store.insert_job(_job("mj-a", item_id="i-1"))
        store.insert_job(_job("mj-b", item_id="i-1"))
        store.insert_job(_job("mj-c", item_id="i-2"))

        removed = store.delete_jobs_for_item("i-1")

        assert sorted(removed) == ["mj-a", "mj-b"]
        assert [j.id for j in store.list_jobs("r-1")] == ["mj-c"]
        assert store.delete_jobs_for_item("i-1") == []

    def test_sweep_sessions(self, store):
        store.create_session("h-old", "u-1", expires_at=100, created_at=50)
        store.create_session("h-new", "u-1", expires_at=10_000, created_at=50)

        assert store.sweep_sessions(100) == 1
        assert store.get_session("h-old") is None
        assert store.get_session("h-new")["userId"] == "u-1"


class TestTimestamps:
    def test_next_timestamp_is_strictly_later(self):
        future = "2999-01-01T00:00:00.000000+00:00"
        assert next_timestamp(future) == "2999-01-01T00:00:00.000001+00:00"

    def test_next_timestamp_from_past_uses_clock(self):
        past = "2000-01-01T00:00:00.000000+00:00"
        assert next_timestamp(past) > past

    def test_chain_never_repeats(self):
        stamps = [now_iso()]
        for _ in range(50):
            stamps.append(next_timestamp(stamps[-1]))
        assert stamps == sorted(set(stamps))


class TestSlugs:
    @pytest.mark.parametrize("raw, slug", [
        ("Casa Nonna", "casa-nonna"),
        ("  Crème Brûlée & Co. ", "creme-brulee-co"),
        ("---", ""),
        (None, ""),
    ])
    def test_normalize(self, raw, slug):
        assert normalize_slug(raw) == slug


@pytest.mark.skipif(not db.USE_DB, reason="DATABASE_URL not set")
class TestPostgresStore:
    @pytest.fixture
    def pg(self):
        db.ensure_schema()
        return PostgresStore()

    def test_job_round_trip_and_conflict(self, pg):
        suffix = uuid.uuid4().hex[:8]
        restaurant_id = f"r-test-{suffix}"
        item_id = f"i-test-{suffix}"
        pg.create_restaurant({"id": restaurant_id, "name": "Test", "slug": f"test-{suffix}", "description": ""})
        pg.create_item({
            "id": item_id, "restaurantId": restaurant_id, "name": "Dish", "description": "",
            "price": 9.5, "image": "", "modelGlb": "", "modelUsdz": "", "scans": [],
        })
        job = pg.insert_job(_job(f"mj-test-{suffix}", item_id=item_id, restaurant_id=restaurant_id))

        try:
            loaded = pg.get_job(job.id)
            assert loaded.referenceImages == job.referenceImages
            assert pg.get_item(item_id)["price"] == 9.5

            stale = loaded.updatedAt
            loaded.updatedAt = next_timestamp(stale)
            pg.update_job(loaded, expected_updated_at=stale)
            with pytest.raises(ConcurrentUpdateError):
                pg.update_job(loaded, expected_updated_at=stale)
        finally:
            pg.delete_jobs_for_item(item_id)
            pg.delete_item(item_id)
