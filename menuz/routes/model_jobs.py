"""
Model Job Routes Blueprint
--------------------------
The AI 3D-model pipeline over HTTP. Every mutating endpoint answers with
the full job so a polling client never needs a second fetch.

Endpoints:
- GET    /api/ai/providers
- GET    /api/restaurants/<id>/model-jobs
- POST   /api/restaurants/<id>/model-jobs
- GET    /api/model-jobs/<id>
- PUT    /api/model-jobs/<id>
- DELETE /api/model-jobs/<id>
- POST   /api/model-jobs/<id>/images      multipart "photos"
- POST   /api/model-jobs/<id>/ai/start    {provider?, aiModel?, targetPolycount?}
- POST   /api/model-jobs/<id>/ai/sync     {autoPublish?}
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from menuz.middleware import require_auth
from menuz.services.blob_store import get_blob_store
from menuz.services.model_job_service import ModelJobService, list_providers
from menuz.services.store import get_store
from menuz.utils.error_handlers import json_body
from menuz.utils.helpers import log_event

bp = Blueprint("model_jobs", __name__)


def _jobs() -> ModelJobService:
    return ModelJobService(get_store(), get_blob_store())


def _with_job(result: dict) -> dict:
    out = dict(result)
    out["job"] = result["job"].to_dict()
    return out


@bp.route("/ai/providers", methods=["GET"])
@require_auth
def providers():
    return jsonify({"providers": list_providers()})


@bp.route("/restaurants/<restaurant_id>/model-jobs", methods=["GET"])
@require_auth
def list_jobs(restaurant_id):
    jobs = _jobs().list_jobs(restaurant_id, g.user)
    return jsonify({"jobs": [job.to_dict() for job in jobs]})


@bp.route("/restaurants/<restaurant_id>/model-jobs", methods=["POST"])
@require_auth
def create_job(restaurant_id):
    body = json_body()
    log_event("model-jobs/create:incoming", body)
    job = _jobs().create_job(restaurant_id, body, g.user)
    return jsonify({"job": job.to_dict()})


@bp.route("/model-jobs/<job_id>", methods=["GET"])
@require_auth
def get_job(job_id):
    return jsonify({"job": _jobs().get_job(job_id, g.user).to_dict()})


@bp.route("/model-jobs/<job_id>", methods=["PUT"])
@require_auth
def update_job(job_id):
    body = json_body()
    log_event("model-jobs/update:incoming", body)
    job = _jobs().update_job(job_id, body, g.user)
    return jsonify({"job": job.to_dict()})


@bp.route("/model-jobs/<job_id>", methods=["DELETE"])
@require_auth
def delete_job(job_id):
    return jsonify(_jobs().delete_job(job_id, g.user))


@bp.route("/model-jobs/<job_id>/images", methods=["POST"])
@require_auth
def add_images(job_id):
    files = request.files.getlist("photos")
    return jsonify(_with_job(_jobs().add_reference_images(job_id, files, g.user)))


@bp.route("/model-jobs/<job_id>/ai/start", methods=["POST"])
@require_auth
def start(job_id):
    body = json_body()
    log_event("model-jobs/ai/start:incoming", body)
    return jsonify(_with_job(_jobs().start(job_id, body, g.user)))


@bp.route("/model-jobs/<job_id>/ai/sync", methods=["POST"])
@require_auth
def sync(job_id):
    body = json_body()
    return jsonify(_with_job(_jobs().sync(job_id, body, g.user)))
