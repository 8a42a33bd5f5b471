"""
Shared fixtures: an app on a temporary local store and local blob store,
two restaurants with their users, and the provider settings every test starts from.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from menuz.app import create_app
from menuz.config import config
from menuz.services.blob_store import LocalBlobStore
from menuz.services.identity_service import ROLE_CLIENT, ROLE_MASTER, IdentityService
from menuz.services.store import LocalStore
from menuz.tests.fakes import MESHY_BASE, PASSWORD


@pytest.fixture(autouse=True)
def meshy_config(monkeypatch):
    monkeypatch.setattr(config, "MESHY_API_KEY", "test-key")
    monkeypatch.setattr(config, "MESHY_API_BASE", MESHY_BASE)
    monkeypatch.setattr(config, "MESHY_AI_MODEL", "meshy-6")
    monkeypatch.setattr(config, "_MESHY_MAX_REFERENCE_IMAGES_RAW", 4)
    monkeypatch.setattr(config, "ASSET_INPUT_MODE", "inline")
    monkeypatch.setattr(config, "PUBLIC_BASE_URL", "")
    monkeypatch.setattr(config, "UPLOAD_MAX_FILES", 20)
    monkeypatch.setattr(config, "UPLOAD_MAX_FILE_MB", 12)


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "db.json")


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "uploads")


@pytest.fixture
def world(store):
    """Two tenants, one item in the first, a master and one client per tenant."""
    r1 = {"id": "r-one", "name": "Casa Nonna", "slug": "casa-nonna", "description": ""}
    r2 = {"id": "r-two", "name": "Sushi Bar", "slug": "sushi-bar", "description": ""}
    store.create_restaurant(r1)
    store.create_restaurant(r2)

    item = {
        "id": "i-lasagna",
        "restaurantId": r1["id"],
        "name": "Lasagna",
        "description": "",
        "price": 42.0,
        "image": "",
        "modelGlb": "",
        "modelUsdz": "",
        "scans": [],
    }
    store.create_item(item)

    master = IdentityService.create_user(store, "master@menuz.test", PASSWORD, role=ROLE_MASTER)
    client = IdentityService.create_user(store, "owner@nonna.test", PASSWORD, role=ROLE_CLIENT, restaurant_id=r1["id"])
    other = IdentityService.create_user(store, "owner@sushi.test", PASSWORD, role=ROLE_CLIENT, restaurant_id=r2["id"])

    return SimpleNamespace(r1=r1, r2=r2, item=item, master=master, client=client, other=other)


@pytest.fixture
def app(store, blob_store):
    app = create_app(store=store, blob_store=blob_store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(store):
    def _headers(user):
        token = IdentityService.create_session(store, user["id"])
        return {"Authorization": f"Bearer {token}"}
    return _headers
