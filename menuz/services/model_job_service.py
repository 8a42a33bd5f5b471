"""
Model Job Service - lifecycle of AI 3D-model generation jobs.

    enviado ──start──▶ processando ──sync──▶ revisao ──(autoPublish)──▶ publicado
                            │                                  ▲
                            └──────────▶ erro                  │
    direct edit may set any status (triagem included) ─────────┘

Rules:
- status only ever holds a JobStatus member; provider vocabulary goes
  through meshy_service.map_status
- start/sync failures are persisted (erro + providerStatus marker) before
  the caller sees a 502
- materialization only fills empty modelGlb/modelUsdz
- entering publicado copies non-empty model fields onto the item
- every job write is a compare-and-swap on updatedAt (409 job_conflict)

Usage:
    from menuz.services.model_job_service import ModelJobService

    service = ModelJobService(get_store(), get_blob_store())
    result = service.start(job_id, body, g.user)
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from menuz.config import IMAGE_EXTENSIONS, config
from menuz.services import artifact_service, asset_resolver, meshy_service
from menuz.services.artifact_service import DownloadFailed
from menuz.services.blob_store import BlobStore, BlobStoreError
from menuz.services.identity_service import IdentityService
from menuz.services.meshy_service import MeshyError
from menuz.services.model_job import (
    NOTES_MAX_CHARS,
    PROVIDER_STATUS_ERROR_ON_START,
    PROVIDER_STATUS_ERROR_ON_SYNC,
    PROVIDER_STATUS_SUBMITTED,
    JobProvider,
    JobStatus,
    ModelJob,
    SourceType,
)
from menuz.services.store import BaseStore, ConcurrentUpdateError
from menuz.utils.error_handlers import ApiError
from menuz.utils.helpers import file_ext, get_content_type_for_extension, next_timestamp, now_iso, truncate

logger = logging.getLogger("menuz.jobs")

DETAIL_LIMIT = 300


def list_providers() -> List[Dict[str, Any]]:
    """Provider descriptors for the admin UI."""
    meshy_ready = meshy_service.is_configured()
    return [
        {
            "id": JobProvider.MESHY,
            "label": "Meshy",
            "enabled": meshy_ready,
            "supportsAuto": True,
            "supportsMultiImage": True,
            "notes": "Ready for image-to-3D generation." if meshy_ready else "Set MESHY_API_KEY to enable.",
        },
        {
            "id": JobProvider.MANUAL,
            "label": "Manual",
            "enabled": True,
            "supportsAuto": False,
            "supportsMultiImage": False,
            "notes": "Operator-driven pipeline (scanner + modelling tool).",
        },
    ]


def get_provider(provider_id: str) -> Optional[Dict[str, Any]]:
    for provider in list_providers():
        if provider["id"] == provider_id:
            return provider
    return None


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _parse_polycount(value: Any) -> Optional[int]:
    """Positive int from the request, None when absent. Raises ApiError otherwise."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ApiError("target_polycount_invalid", 400)
    try:
        count = int(str(value).strip())
    except ValueError:
        raise ApiError("target_polycount_invalid", 400)
    if count <= 0:
        raise ApiError("target_polycount_invalid", 400)
    return count


class ModelJobService:
    """State machine for model jobs, bound to a store and a blob store."""

    def __init__(self, store: BaseStore, blob_store: BlobStore):
        self.store = store
        self.blob_store = blob_store

    # ─────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────
    def _require_restaurant(self, restaurant_id: str, user: dict) -> dict:
        IdentityService.require_restaurant_access(user, restaurant_id)
        restaurant = self.store.get_restaurant(restaurant_id)
        if not restaurant:
            raise ApiError("restaurant_not_found", 404)
        return restaurant

    def _load_job(self, job_id: str, user: dict) -> ModelJob:
        job = self.store.get_job(job_id)
        if not job:
            raise ApiError("job_not_found", 404)
        IdentityService.require_restaurant_access(user, job.restaurantId)
        return job

    def _save(self, job: ModelJob, expected_updated_at: str) -> ModelJob:
        job.updatedAt = next_timestamp(expected_updated_at)
        try:
            return self.store.update_job(job, expected_updated_at=expected_updated_at)
        except ConcurrentUpdateError:
            logger.warning("[JOB] %s changed underneath us; rejecting write", job.id)
            raise ApiError("job_conflict", 409)

    def _publish_to_item(self, job: ModelJob) -> Optional[dict]:
        """Copy non-empty model fields onto the linked item."""
        item = self.store.get_item(job.itemId)
        if not item:
            return None
        changed = False
        if job.modelGlb and item.get("modelGlb") != job.modelGlb:
            item["modelGlb"] = job.modelGlb
            changed = True
        if job.modelUsdz and item.get("modelUsdz") != job.modelUsdz:
            item["modelUsdz"] = job.modelUsdz
            changed = True
        if changed:
            self.store.update_item(item)
            logger.info("[JOB] %s published onto item %s", job.id, item["id"])
        return item

    # ─────────────────────────────────────────────────────────────
    # CRUD
    # ─────────────────────────────────────────────────────────────
    def list_jobs(self, restaurant_id: str, user: dict) -> List[ModelJob]:
        self._require_restaurant(restaurant_id, user)
        jobs = self.store.list_jobs(restaurant_id)
        return sorted(jobs, key=lambda j: j.updatedAt or "", reverse=True)

    def get_job(self, job_id: str, user: dict) -> ModelJob:
        return self._load_job(job_id, user)

    def create_job(self, restaurant_id: str, body: dict, user: dict) -> ModelJob:
        restaurant = self._require_restaurant(restaurant_id, user)

        item_id = _clean(body.get("itemId"))
        if not item_id:
            raise ApiError("item_required", 400)
        item = self.store.get_item(item_id)
        if not item or item.get("restaurantId") != restaurant["id"]:
            raise ApiError("item_invalid", 400)

        source = _clean(body.get("sourceType"))
        if source not in SourceType.ALL:
            raise ApiError("source_invalid", 400)

        provider = _clean(body.get("provider") or JobProvider.MANUAL).lower()
        if provider not in JobProvider.ALL:
            raise ApiError("provider_invalid", 400)

        now = now_iso()
        job = ModelJob(
            id=f"mj-{uuid.uuid4()}",
            restaurantId=restaurant["id"],
            itemId=item["id"],
            sourceType=source,
            provider=provider,
            aiModel=_clean(body.get("aiModel")),
            autoMode=bool(body.get("autoMode")),
            status=JobStatus.ENVIADO,
            notes=_clean(body.get("notes"))[:NOTES_MAX_CHARS],
            createdAt=now,
            updatedAt=now,
            createdBy=user.get("id") or "",
        )
        self.store.insert_job(job)
        logger.info("[JOB] Created %s for item %s (provider=%s)", job.id, item["id"], provider)
        return job

    def update_job(self, job_id: str, body: dict, user: dict) -> ModelJob:
        """Direct edit. Any status is accepted here; the pipeline rules don't apply."""
        job = self._load_job(job_id, user)
        expected = job.updatedAt

        if "status" in body:
            status = _clean(body.get("status")).lower()
            if status not in JobStatus.ALL:
                raise ApiError("status_invalid", 400)
            job.status = status
        if "notes" in body:
            job.notes = _clean(body.get("notes"))[:NOTES_MAX_CHARS]
        if "modelGlb" in body:
            job.modelGlb = _clean(body.get("modelGlb"))
        if "modelUsdz" in body:
            job.modelUsdz = _clean(body.get("modelUsdz"))
        if "provider" in body:
            provider = _clean(body.get("provider")).lower()
            if provider not in JobProvider.ALL:
                raise ApiError("provider_invalid", 400)
            if provider != job.provider and job.providerTaskId:
                raise ApiError("provider_locked", 400)
            job.provider = provider
        if "aiModel" in body:
            job.aiModel = _clean(body.get("aiModel"))
        if "autoMode" in body:
            job.autoMode = bool(body.get("autoMode"))

        self._save(job, expected)
        if job.status == JobStatus.PUBLICADO:
            self._publish_to_item(job)
        return job

    def delete_job(self, job_id: str, user: dict) -> Dict[str, Any]:
        job = self._load_job(job_id, user)
        self.store.delete_job(job.id)
        self.blob_store.delete_prefix(f"job-images/{job.id}")
        logger.info("[JOB] Deleted %s", job.id)
        return {"ok": True, "removedJobId": job.id}

    def add_reference_images(self, job_id: str, files: list, user: dict) -> Dict[str, Any]:
        """
        Append uploaded photos to the job. Every file is checked before any
        is written, so a bad file fails the whole call.
        """
        job = self._load_job(job_id, user)
        expected = job.updatedAt

        files = [f for f in (files or []) if f is not None and getattr(f, "filename", "")]
        if not files:
            raise ApiError("photos_required", 400)
        if len(files) > config.UPLOAD_MAX_FILES:
            raise ApiError("too_many_files", 400, f"at most {config.UPLOAD_MAX_FILES} files per upload")

        staged = []
        for upload in files:
            ext = file_ext(upload.filename)
            if ext not in IMAGE_EXTENSIONS:
                raise ApiError("photos_invalid_type", 400, truncate(upload.filename, 120))
            data = upload.read()
            if len(data) > config.UPLOAD_MAX_FILE_BYTES:
                raise ApiError("file_too_large", 400, f"max {config.UPLOAD_MAX_FILE_MB}MB per file")
            staged.append((ext, data))

        urls = []
        try:
            for ext, data in staged:
                key = f"job-images/{job.id}/{uuid.uuid4()}{ext}"
                urls.append(self.blob_store.put(key, data, get_content_type_for_extension(ext)))
        except BlobStoreError as e:
            logger.warning("[JOB] %s photo upload failed after %d file(s): %s", job.id, len(urls), e)
            raise ApiError("storage_failed", 502, truncate(str(e), DETAIL_LIMIT))

        job.referenceImages = list(job.referenceImages) + urls
        self._save(job, expected)
        return {"urls": urls, "count": len(job.referenceImages), "job": job}

    def purge_item(self, item_id: str, user: dict) -> Dict[str, Any]:
        """Delete an item with its jobs and every stored file under their namespaces."""
        item = self.store.get_item(item_id)
        if not item:
            raise ApiError("item_not_found", 404)
        IdentityService.require_restaurant_access(user, item.get("restaurantId"))

        removed_jobs = self.store.delete_jobs_for_item(item_id)
        self.store.delete_item(item_id)

        self.blob_store.delete_prefix(f"scans/{item_id}")
        for job_id in removed_jobs:
            self.blob_store.delete_prefix(f"job-images/{job_id}")
        logger.info("[JOB] Removed item %s with %d job(s)", item_id, len(removed_jobs))
        return {"ok": True, "removedItemId": item_id, "removedModelJobs": removed_jobs}

    # ─────────────────────────────────────────────────────────────
    # Pipeline
    # ─────────────────────────────────────────────────────────────
    def start(self, job_id: str, body: dict, user: dict) -> Dict[str, Any]:
        job = self._load_job(job_id, user)
        expected = job.updatedAt

        item = self.store.get_item(job.itemId)
        if not item:
            raise ApiError("item_not_found", 400)

        provider_id = _clean(body.get("provider") or job.provider or JobProvider.MANUAL).lower()
        provider = get_provider(provider_id)
        if not provider:
            raise ApiError("provider_invalid", 400)
        if not provider["enabled"]:
            raise ApiError("provider_not_configured", 400)
        if provider_id != JobProvider.MESHY:
            raise ApiError("provider_not_implemented", 400)

        target_polycount = _parse_polycount(body.get("targetPolycount"))

        images = asset_resolver.build_inputs(item, job, blob_store=self.blob_store)
        if not images:
            raise ApiError("image_source_not_found", 400)

        ai_model = _clean(body.get("aiModel")) or job.aiModel or config.MESHY_AI_MODEL

        try:
            submitted = meshy_service.submit(images, ai_model=ai_model, target_polycount=target_polycount)
        except MeshyError as e:
            logger.warning("[JOB] Start failed for %s: %s", job.id, e)
            job.status = JobStatus.ERRO
            job.providerStatus = PROVIDER_STATUS_ERROR_ON_START
            self._save(job, expected)
            raise ApiError("ai_start_failed", 502, truncate(str(e), DETAIL_LIMIT))

        job.provider = provider_id
        job.aiModel = ai_model
        job.providerTaskId = submitted.task_id
        job.providerTaskEndpoint = submitted.endpoint
        job.providerStatus = PROVIDER_STATUS_SUBMITTED
        job.status = JobStatus.PROCESSANDO
        self._save(job, expected)
        logger.info("[JOB] %s submitted as task %s via %s", job.id, submitted.task_id, submitted.endpoint)

        return {
            "job": job,
            "taskId": submitted.task_id,
            "endpointUsed": submitted.endpoint,
            "imagesSent": len(images),
        }

    def _materialize(self, job: ModelJob, payload: dict) -> List[Dict[str, Any]]:
        """Fill empty model fields from the provider's URLs. Returns per-format failures."""
        urls = meshy_service.extract_model_urls(payload)
        errors = []
        for fmt, attr in (("glb", "modelGlb"), ("usdz", "modelUsdz")):
            remote = urls.get(fmt)
            if not remote or getattr(job, attr):
                continue
            try:
                stored = artifact_service.persist_artifact(remote, fmt, blob_store=self.blob_store)
            except DownloadFailed as e:
                logger.warning("[JOB] %s download of %s failed: %s", job.id, fmt, e)
                errors.append({"format": fmt, "status": e.status, "detail": truncate(str(e), DETAIL_LIMIT)})
                continue
            if stored:
                setattr(job, attr, stored)
        return errors

    def sync(self, job_id: str, body: dict, user: dict) -> Dict[str, Any]:
        job = self._load_job(job_id, user)
        expected = job.updatedAt

        if job.provider != JobProvider.MESHY:
            raise ApiError("provider_not_implemented", 400)
        if not job.providerTaskId:
            raise ApiError("provider_task_missing", 400)

        try:
            snapshot = meshy_service.fetch(job.providerTaskId, job.providerTaskEndpoint)
        except MeshyError as e:
            logger.warning("[JOB] Sync failed for %s: %s", job.id, e)
            job.status = JobStatus.ERRO
            job.providerStatus = PROVIDER_STATUS_ERROR_ON_SYNC
            self._save(job, expected)
            raise ApiError("ai_sync_failed", 502, truncate(str(e), DETAIL_LIMIT))

        was_published = job.status == JobStatus.PUBLICADO
        mapped = meshy_service.map_status(snapshot.raw_status)
        job.providerTaskEndpoint = snapshot.endpoint
        job.providerStatus = snapshot.raw_status

        artifact_errors: List[Dict[str, Any]] = []
        if mapped == JobStatus.REVISAO:
            job.status = JobStatus.PUBLICADO if was_published else JobStatus.REVISAO
            artifact_errors = self._materialize(job, snapshot.payload)
            if (
                not was_published
                and not artifact_errors
                and job.autoMode
                and body.get("autoPublish") is True
            ):
                job.status = JobStatus.PUBLICADO
        else:
            job.status = mapped

        self._save(job, expected)
        if job.status == JobStatus.PUBLICADO and not was_published:
            self._publish_to_item(job)

        return {"job": job, "providerStatus": snapshot.raw_status, "artifactErrors": artifact_errors}
