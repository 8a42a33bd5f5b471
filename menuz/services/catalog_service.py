"""
Catalog Service - restaurants, their client users, menu items and the
table orders tenants receive.

Plain CRUD around the store; item deletion hands off to
ModelJobService.purge_item so jobs and stored photos go with the item.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List

from menuz.config import IMAGE_EXTENSIONS, config
from menuz.services.blob_store import BlobStore, BlobStoreError
from menuz.services.identity_service import ROLE_CLIENT, IdentityService
from menuz.services.model_job_service import ModelJobService
from menuz.services.store import BaseStore
from menuz.utils.error_handlers import ApiError
from menuz.utils.helpers import file_ext, get_content_type_for_extension, normalize_slug, truncate

ORDER_STATUSES = ("novo", "aceito", "entregue", "cancelado")

# multipart field -> required extension (image accepts any image type)
_ASSET_FIELDS = {"image": "", "modelGlb": ".glb", "modelUsdz": ".usdz"}


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _price(value: Any) -> float:
    try:
        price = round(float(value), 2)
    except (TypeError, ValueError):
        raise ApiError("price_invalid", 400)
    if price < 0:
        raise ApiError("price_invalid", 400)
    return price


class CatalogService:
    def __init__(self, store: BaseStore, blob_store: BlobStore):
        self.store = store
        self.blob_store = blob_store

    # ─────────────────────────────────────────────────────────────
    # Restaurants
    # ─────────────────────────────────────────────────────────────
    def list_restaurants(self) -> List[dict]:
        return self.store.list_restaurants()

    def get_restaurant(self, restaurant_id: str, user: dict) -> dict:
        IdentityService.require_restaurant_access(user, restaurant_id)
        restaurant = self.store.get_restaurant(restaurant_id)
        if not restaurant:
            raise ApiError("restaurant_not_found", 404)
        return restaurant

    def my_restaurant(self, user: dict) -> dict:
        if user.get("role") != ROLE_CLIENT or not user.get("restaurantId"):
            raise ApiError("forbidden", 403)
        return self.get_restaurant(user["restaurantId"], user)

    def create_restaurant(self, body: dict) -> dict:
        name = _clean(body.get("name"))
        if not name:
            raise ApiError("name_required", 400)
        slug = normalize_slug(body.get("slug") or name)
        if not slug:
            raise ApiError("slug_invalid", 400)
        if self.store.get_restaurant_by_slug(slug):
            raise ApiError("slug_in_use", 400)

        restaurant = {
            "id": f"r-{uuid.uuid4()}",
            "name": name,
            "slug": slug,
            "description": _clean(body.get("description")),
        }
        self.store.create_restaurant(restaurant)
        print(f"[CATALOG] Created restaurant {slug}")
        return restaurant

    def update_restaurant(self, restaurant_id: str, body: dict, user: dict) -> dict:
        """Blank name/description keep the current value; a slug is re-normalized and must stay unique."""
        restaurant = self.get_restaurant(restaurant_id, user)
        restaurant["name"] = _clean(body.get("name")) or restaurant["name"]
        restaurant["description"] = _clean(body.get("description")) or restaurant.get("description") or ""
        if body.get("slug"):
            slug = normalize_slug(body.get("slug"))
            if slug and slug != restaurant["slug"]:
                if self.store.get_restaurant_by_slug(slug):
                    raise ApiError("slug_in_use", 400)
                restaurant["slug"] = slug
        return self.store.update_restaurant(restaurant)

    def create_client_user(self, restaurant_id: str, body: dict, user: dict) -> dict:
        restaurant = self.get_restaurant(restaurant_id, user)
        email = _clean(body.get("email")).lower()
        password = body.get("password") or ""
        if not email or not password:
            raise ApiError("email_password_required", 400)
        if self.store.get_user_by_email(email):
            raise ApiError("email_in_use", 400)
        try:
            created = IdentityService.create_user(
                self.store, email, password, role=ROLE_CLIENT, restaurant_id=restaurant["id"]
            )
        except ValueError as e:
            raise ApiError("user_invalid", 400, str(e))
        return IdentityService.public_user(created)

    # ─────────────────────────────────────────────────────────────
    # Items
    # ─────────────────────────────────────────────────────────────
    def _load_item(self, item_id: str, user: dict) -> dict:
        item = self.store.get_item(item_id)
        if not item:
            raise ApiError("item_not_found", 404)
        IdentityService.require_restaurant_access(user, item.get("restaurantId"))
        return item

    def list_items(self, restaurant_id: str, user: dict) -> List[dict]:
        self.get_restaurant(restaurant_id, user)
        return self.store.list_items(restaurant_id)

    def create_item(self, restaurant_id: str, body: dict, user: dict) -> dict:
        restaurant = self.get_restaurant(restaurant_id, user)
        name = _clean(body.get("name"))
        if not name:
            raise ApiError("name_required", 400)

        item = {
            "id": f"i-{uuid.uuid4()}",
            "restaurantId": restaurant["id"],
            "name": name,
            "description": _clean(body.get("description")),
            "price": _price(body.get("price") or 0),
            "image": _clean(body.get("image")),
            "modelGlb": _clean(body.get("modelGlb")),
            "modelUsdz": _clean(body.get("modelUsdz")),
            "scans": [],
        }
        return self.store.create_item(item)

    def update_item(self, item_id: str, body: dict, user: dict) -> dict:
        item = self._load_item(item_id, user)
        if "name" in body:
            name = _clean(body.get("name"))
            if not name:
                raise ApiError("name_required", 400)
            item["name"] = name
        if "price" in body:
            item["price"] = _price(body.get("price") or 0)
        for field in ("description", "image", "modelGlb", "modelUsdz"):
            if field in body:
                item[field] = _clean(body.get(field))
        return self.store.update_item(item)

    def delete_item(self, item_id: str, user: dict) -> Dict[str, Any]:
        return ModelJobService(self.store, self.blob_store).purge_item(item_id, user)

    def add_scan(self, item_id: str, upload, user: dict) -> Dict[str, Any]:
        """Store one scanner capture and append it to the item's scans."""
        item = self._load_item(item_id, user)
        if upload is None or not getattr(upload, "filename", ""):
            raise ApiError("photo_required", 400)
        ext = file_ext(upload.filename)
        if ext not in IMAGE_EXTENSIONS:
            raise ApiError("photos_invalid_type", 400)
        data = upload.read()
        if len(data) > config.UPLOAD_MAX_FILE_BYTES:
            raise ApiError("file_too_large", 400, f"max {config.UPLOAD_MAX_FILE_MB}MB per file")

        url = self._store_file(f"scans/{item['id']}/{uuid.uuid4()}{ext}", data, ext)
        item["scans"] = list(item.get("scans") or []) + [url]
        self.store.update_item(item)
        return {"url": url, "count": len(item["scans"])}

    def replace_assets(self, item_id: str, files: dict, user: dict) -> dict:
        """
        Manual upload of the listing image and/or model files.

        ``files`` maps ``image`` / ``modelGlb`` / ``modelUsdz`` to uploads.
        Every file is checked before any is stored; the matching item fields
        are overwritten.
        """
        item = self._load_item(item_id, user)

        staged = []
        for field, upload in (files or {}).items():
            if field not in _ASSET_FIELDS or upload is None or not getattr(upload, "filename", ""):
                continue
            ext = file_ext(upload.filename)
            if field == "image":
                if ext not in IMAGE_EXTENSIONS:
                    raise ApiError("photos_invalid_type", 400)
            elif ext != _ASSET_FIELDS[field]:
                raise ApiError("model_invalid_type", 400, f"{field} must be a {_ASSET_FIELDS[field]} file")
            data = upload.read()
            if field == "image" and len(data) > config.UPLOAD_MAX_FILE_BYTES:
                raise ApiError("file_too_large", 400, f"max {config.UPLOAD_MAX_FILE_MB}MB per file")
            staged.append((field, ext, data))
        if not staged:
            raise ApiError("files_required", 400)

        for field, ext, data in staged:
            folder = "images" if field == "image" else "models"
            item[field] = self._store_file(f"{folder}/{uuid.uuid4()}{ext}", data, ext)
        print(f"[CATALOG] Item {item['id']} assets replaced: {', '.join(f for f, _, _ in staged)}")
        return self.store.update_item(item)

    def _store_file(self, key: str, data: bytes, ext: str) -> str:
        try:
            return self.blob_store.put(key, data, get_content_type_for_extension(ext))
        except BlobStoreError as e:
            raise ApiError("storage_failed", 502, truncate(str(e), 300))

    # ─────────────────────────────────────────────────────────────
    # Orders
    # ─────────────────────────────────────────────────────────────
    def list_orders(self, restaurant_id: str, user: dict) -> List[dict]:
        self.get_restaurant(restaurant_id, user)
        return self.store.list_orders(restaurant_id)

    def update_order_status(self, order_id: str, body: dict, user: dict) -> dict:
        order = self.store.get_order(order_id)
        if not order:
            raise ApiError("order_not_found", 404)
        IdentityService.require_restaurant_access(user, order.get("restaurantId"))
        status = _clean(body.get("status")).lower()
        if status not in ORDER_STATUSES:
            raise ApiError("invalid_status", 400)
        order["status"] = status
        return self.store.update_order(order)
