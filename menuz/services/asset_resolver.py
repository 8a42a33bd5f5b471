"""
Gather provider-consumable image inputs for a model job.

Candidates are taken newest first in priority order: the job's own
reference photos, then the item's scans, then the item's listing image.
Each one is resolved on its own; anything unusable is skipped.
"""

from __future__ import annotations

import base64
from typing import List, Optional

from menuz.config import IMAGE_EXTENSIONS, config
from menuz.services.blob_store import BlobStore, key_from_ref
from menuz.services.model_job import ModelJob
from menuz.utils.helpers import file_ext, image_mime_for_extension, is_remote_http_url, url_path_ext


def candidate_refs(item: Optional[dict], job: ModelJob) -> List[str]:
    """All candidate references in priority order, before resolution."""
    item = item or {}
    candidates: List[str] = []
    candidates.extend(reversed(job.referenceImages or []))
    candidates.extend(reversed(item.get("scans") or []))
    if item.get("image"):
        candidates.append(item["image"])
    return [c.strip() for c in candidates if isinstance(c, str) and c.strip()]


def _resolve_remote(url: str) -> Optional[str]:
    ext = url_path_ext(url)
    if ext and ext not in IMAGE_EXTENSIONS:
        return None
    return url


def _resolve_stored(ref: str, blob_store: BlobStore) -> Optional[str]:
    key = key_from_ref(ref)
    if key is None:
        return None
    ext = file_ext(key)
    if ext not in IMAGE_EXTENSIONS:
        return None

    if config.ASSET_INPUT_MODE == "url":
        if not config.PUBLIC_BASE_URL:
            return None
        return f"{config.PUBLIC_BASE_URL}{ref}"

    data = blob_store.get(key)
    if not data:
        return None
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{image_mime_for_extension(ext)};base64,{encoded}"


def resolve(ref: str, blob_store: BlobStore) -> Optional[str]:
    """Provider-ready form of one reference, or None to skip it."""
    if is_remote_http_url(ref):
        return _resolve_remote(ref)
    return _resolve_stored(ref, blob_store)


def build_inputs(
    item: Optional[dict],
    job: ModelJob,
    *,
    blob_store: BlobStore,
    max_images: Optional[int] = None,
) -> List[str]:
    limit = max_images if max_images is not None else config.MESHY_MAX_REFERENCE_IMAGES
    limit = max(1, int(limit))

    inputs: List[str] = []
    seen = set()
    for ref in candidate_refs(item, job):
        resolved = resolve(ref, blob_store)
        if not resolved or resolved in seen:
            continue
        seen.add(resolved)
        inputs.append(resolved)
        if len(inputs) >= limit:
            break
    return inputs
