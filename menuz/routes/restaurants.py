"""
Restaurant Routes Blueprint
---------------------------
Tenants, their client users and the table orders they receive. Listing
and creating restaurants is master-only; everything else is scoped to
the caller's restaurant.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from menuz.middleware import require_auth, require_master
from menuz.services.blob_store import get_blob_store
from menuz.services.catalog_service import CatalogService
from menuz.services.store import get_store
from menuz.utils.error_handlers import json_body

bp = Blueprint("restaurants", __name__)


def _catalog() -> CatalogService:
    return CatalogService(get_store(), get_blob_store())


@bp.route("/restaurants", methods=["GET"])
@require_master
def list_restaurants():
    return jsonify({"restaurants": _catalog().list_restaurants()})


@bp.route("/restaurants", methods=["POST"])
@require_master
def create_restaurant():
    body = json_body()
    return jsonify({"restaurant": _catalog().create_restaurant(body)})


@bp.route("/restaurants/<restaurant_id>", methods=["GET"])
@require_auth
def get_restaurant(restaurant_id):
    return jsonify({"restaurant": _catalog().get_restaurant(restaurant_id, g.user)})


@bp.route("/my-restaurant", methods=["GET"])
@require_auth
def my_restaurant():
    return jsonify({"restaurant": _catalog().my_restaurant(g.user)})


@bp.route("/restaurants/<restaurant_id>/users", methods=["POST"])
@require_master
def create_restaurant_user(restaurant_id):
    body = json_body()
    return jsonify({"user": _catalog().create_client_user(restaurant_id, body, g.user)})


@bp.route("/restaurants/<restaurant_id>", methods=["PUT"])
@require_auth
def update_restaurant(restaurant_id):
    body = json_body()
    return jsonify({"restaurant": _catalog().update_restaurant(restaurant_id, body, g.user)})


@bp.route("/restaurants/<restaurant_id>/orders", methods=["GET"])
@require_auth
def list_orders(restaurant_id):
    return jsonify({"orders": _catalog().list_orders(restaurant_id, g.user)})


@bp.route("/orders/<order_id>", methods=["PUT"])
@require_auth
def update_order(order_id):
    body = json_body()
    return jsonify({"order": _catalog().update_order_status(order_id, body, g.user)})
