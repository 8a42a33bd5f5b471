"""
Liveness and database probes. Neither requires a session.

- GET /api/health    which backends are wired and whether Meshy is usable
- GET /api/db-check  round-trip to PostgreSQL (503 when absent or failing)
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from menuz import __version__, db
from menuz.services import meshy_service
from menuz.services.blob_store import get_blob_store
from menuz.services.store import get_store

bp = Blueprint("health", __name__)


@bp.route("/health", methods=["GET"])
def health():
    return jsonify({
        "ok": True,
        "version": __version__,
        "store": get_store().name,
        "blobStore": get_blob_store().name,
        "meshyConfigured": meshy_service.is_configured(),
    })


@bp.route("/db-check", methods=["GET"])
def db_check():
    if not db.USE_DB:
        return jsonify({"ok": False, "error": "db_disabled"}), 503
    if not db.verify_connection():
        return jsonify({"ok": False, "error": "db_query_failed"}), 503
    return jsonify({"ok": True, "db": "connected"})
