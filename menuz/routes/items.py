"""
Menu Item Routes Blueprint
--------------------------
Item CRUD, scanner captures and manual image/model uploads. Deleting an
item also removes its model jobs and every stored photo under their
namespaces.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from menuz.middleware import require_auth
from menuz.services.blob_store import get_blob_store
from menuz.services.catalog_service import CatalogService
from menuz.services.store import get_store
from menuz.utils.error_handlers import json_body

bp = Blueprint("items", __name__)


def _catalog() -> CatalogService:
    return CatalogService(get_store(), get_blob_store())


@bp.route("/restaurants/<restaurant_id>/items", methods=["GET"])
@require_auth
def list_items(restaurant_id):
    return jsonify({"items": _catalog().list_items(restaurant_id, g.user)})


@bp.route("/restaurants/<restaurant_id>/items", methods=["POST"])
@require_auth
def create_item(restaurant_id):
    body = json_body()
    return jsonify({"item": _catalog().create_item(restaurant_id, body, g.user)})


@bp.route("/items/<item_id>", methods=["PUT"])
@require_auth
def update_item(item_id):
    body = json_body()
    return jsonify({"item": _catalog().update_item(item_id, body, g.user)})


@bp.route("/items/<item_id>", methods=["DELETE"])
@require_auth
def delete_item(item_id):
    return jsonify(_catalog().delete_item(item_id, g.user))


@bp.route("/items/<item_id>/scan", methods=["POST"])
@require_auth
def add_scan(item_id):
    return jsonify(_catalog().add_scan(item_id, request.files.get("photo"), g.user))


@bp.route("/items/<item_id>/assets", methods=["POST"])
@require_auth
def replace_assets(item_id):
    files = {field: request.files.get(field) for field in ("image", "modelGlb", "modelUsdz")}
    return jsonify({"item": _catalog().replace_assets(item_id, files, g.user)})
