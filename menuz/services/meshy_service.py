"""
Meshy image-to-3D adapter.

Hides the vendor's request/response contract behind four calls:

    submit(images, ai_model=..., target_polycount=...) -> SubmitResult
    fetch(task_id, endpoint_hint) -> TaskSnapshot
    map_status(raw_status) -> domain status
    extract_model_urls(payload) -> {"glb": url, "usdz": url}

The vendor's response shape differs between endpoints and API versions, so
task ids and model URLs are looked up through small ordered tables of paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import requests

from menuz.config import config
from menuz.services.model_job import JobStatus
from menuz.utils.helpers import is_remote_http_url, log_event, truncate

ENDPOINT_SINGLE = "image-to-3d"
ENDPOINT_MULTI = "multi-image-to-3d"
KNOWN_ENDPOINTS = (ENDPOINT_SINGLE, ENDPOINT_MULTI)

SUCCESS_STATUSES = frozenset({"SUCCEEDED", "COMPLETED", "SUCCESS", "FINISHED"})
FAILURE_STATUSES = frozenset({"FAILED", "ERROR", "CANCELED", "CANCELLED", "TIMEOUT", "EXPIRED"})

ERROR_BODY_LIMIT = 300

# Probed in order; first non-blank string wins.
TASK_ID_PATHS = (
    ("result",),
    ("id",),
    ("task_id",),
    ("taskId",),
    ("task", "id"),
    ("data", "id"),
    ("result", "id"),
)

# Containers holding {"glb": ..., "usdz": ...}, probed in order.
MODEL_URL_CONTAINER_PATHS = (
    ("model_urls",),
    ("result", "model_urls"),
    ("result", "modelUrls"),
    ("output", "model_urls"),
    ("data", "model_urls"),
    ("modelUrls",),
)

# Direct per-format fields, probed after the containers.
DIRECT_URL_PATHS = {
    "glb": (
        ("glb_url",), ("glbUrl",),
        ("result", "glb_url"), ("result", "glbUrl"),
        ("output", "glb_url"), ("output", "glbUrl"),
        ("data", "glb_url"), ("data", "glbUrl"),
    ),
    "usdz": (
        ("usdz_url",), ("usdzUrl",),
        ("result", "usdz_url"), ("result", "usdzUrl"),
        ("output", "usdz_url"), ("output", "usdzUrl"),
        ("data", "usdz_url"), ("data", "usdzUrl"),
    ),
}


# ─────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────
class MeshyError(Exception):
    """Base class for adapter failures."""
    code = "provider_error"


class ProviderUnconfigured(MeshyError):
    code = "provider_not_configured"

    def __init__(self, message: str = "MESHY_API_KEY not set"):
        super().__init__(message)


class NoImageInput(MeshyError):
    code = "image_source_not_found"

    def __init__(self, message: str = "no image input to submit"):
        super().__init__(message)


class ProviderRequestFailed(MeshyError):
    code = "provider_request_failed"

    def __init__(self, status: int, body: str = "", endpoint: str = ""):
        self.status = status
        self.body = truncate(body, ERROR_BODY_LIMIT)
        self.endpoint = endpoint
        super().__init__(f"{endpoint or 'meshy'} -> {status}: {self.body}")


class TaskIdMissing(MeshyError):
    code = "task_id_missing"

    def __init__(self, body: str = ""):
        self.body = truncate(body, ERROR_BODY_LIMIT)
        super().__init__(f"no task id in provider response: {self.body}")


@dataclass
class SubmitResult:
    task_id: str
    endpoint: str


@dataclass
class TaskSnapshot:
    endpoint: str
    raw_status: str
    payload: dict = field(default_factory=dict)


# ─────────────────────────────────────────────────────────────
# HTTP
# ─────────────────────────────────────────────────────────────
def is_configured() -> bool:
    return bool(config.MESHY_API_KEY)


def _auth_headers() -> dict[str, str]:
    if not config.MESHY_API_KEY:
        raise ProviderUnconfigured()
    return {
        "Authorization": f"Bearer {config.MESHY_API_KEY}",
        "Content-Type": "application/json",
    }


def _endpoint_url(endpoint: str, task_id: str = "") -> str:
    url = f"{config.MESHY_API_BASE.rstrip('/')}/{endpoint}"
    if task_id:
        url += f"/{task_id}"
    return url


def _json_or_empty(r: requests.Response) -> dict:
    try:
        data = r.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def mesh_post(endpoint: str, payload: dict) -> dict:
    headers = _auth_headers()
    try:
        r = requests.post(
            _endpoint_url(endpoint), headers=headers, json=payload, timeout=config.MESHY_TIMEOUT_SECONDS
        )
    except requests.RequestException as e:
        raise ProviderRequestFailed(0, str(e), endpoint)
    if not r.ok:
        raise ProviderRequestFailed(r.status_code, r.text, endpoint)
    return _json_or_empty(r)


def mesh_get(endpoint: str, task_id: str) -> dict:
    headers = _auth_headers()
    try:
        r = requests.get(_endpoint_url(endpoint, task_id), headers=headers, timeout=config.MESHY_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise ProviderRequestFailed(0, str(e), endpoint)
    if not r.ok:
        raise ProviderRequestFailed(r.status_code, r.text, endpoint)
    return _json_or_empty(r)


# ─────────────────────────────────────────────────────────────
# Response probing
# ─────────────────────────────────────────────────────────────
def _dig(data: Any, path: Iterable[str]) -> Any:
    cur = data
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def extract_task_id(payload: dict) -> str:
    """First non-blank string found along TASK_ID_PATHS, or ''."""
    for path in TASK_ID_PATHS:
        val = _dig(payload, path)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def extract_model_urls(payload: dict) -> dict[str, str]:
    """
    Output URLs by format. Only absolute http(s) URLs are kept, and each
    format takes the first acceptable value in probe order.
    """
    found: dict[str, str] = {}
    for path in MODEL_URL_CONTAINER_PATHS:
        container = _dig(payload, path)
        if not isinstance(container, dict):
            continue
        for fmt in ("glb", "usdz"):
            val = container.get(fmt)
            if fmt not in found and is_remote_http_url(val):
                found[fmt] = val.strip()

    for fmt, paths in DIRECT_URL_PATHS.items():
        if fmt in found:
            continue
        for path in paths:
            val = _dig(payload, path)
            if is_remote_http_url(val):
                found[fmt] = val.strip()
                break
    return found


def extract_raw_status(payload: dict) -> str:
    for key in ("status", "task_status"):
        val = payload.get(key) if isinstance(payload, dict) else None
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def map_status(raw_status: Optional[str]) -> str:
    """Provider vocabulary -> revisao / erro / processando."""
    status = (raw_status or "").strip().upper()
    if status in SUCCESS_STATUSES:
        return JobStatus.REVISAO
    if status in FAILURE_STATUSES:
        return JobStatus.ERRO
    return JobStatus.PROCESSANDO


# ─────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────
def build_submit_request(
    images: list[str],
    ai_model: Optional[str] = None,
    target_polycount: Optional[int] = None,
) -> tuple[str, dict]:
    """Endpoint and JSON body for a generation request. Arity picks the endpoint."""
    payload: dict[str, Any] = {
        "ai_model": ai_model or config.MESHY_AI_MODEL,
        "should_texture": True,
    }
    if target_polycount:
        payload["target_polycount"] = int(target_polycount)

    if len(images) == 1:
        payload["image_url"] = images[0]
        return ENDPOINT_SINGLE, payload
    payload["image_urls"] = list(images[: config.MESHY_MAX_REFERENCE_IMAGES])
    return ENDPOINT_MULTI, payload


def submit(
    images: list[str],
    *,
    ai_model: Optional[str] = None,
    target_polycount: Optional[int] = None,
) -> SubmitResult:
    if not is_configured():
        raise ProviderUnconfigured()
    images = [img for img in (images or []) if img]
    if not images:
        raise NoImageInput()

    endpoint, payload = build_submit_request(images, ai_model=ai_model, target_polycount=target_polycount)
    log_event("meshy.submit", {"endpoint": endpoint, "payload": payload})

    data = mesh_post(endpoint, payload)
    task_id = extract_task_id(data)
    if not task_id:
        raise TaskIdMissing(str(data))
    print(f"[MESHY] Submitted {len(images)} image(s) to {endpoint} -> task {task_id}")
    return SubmitResult(task_id=task_id, endpoint=endpoint)


def endpoint_order(endpoint_hint: str = "") -> list[str]:
    if endpoint_hint == ENDPOINT_MULTI:
        return [ENDPOINT_MULTI, ENDPOINT_SINGLE]
    return [ENDPOINT_SINGLE, ENDPOINT_MULTI]


def fetch(task_id: str, endpoint_hint: str = "") -> TaskSnapshot:
    """
    Poll a task. The hinted endpoint is tried first; the other one only when
    the first answers 404. Any other failure aborts immediately.
    """
    if not is_configured():
        raise ProviderUnconfigured()

    last_error: Optional[ProviderRequestFailed] = None
    for endpoint in endpoint_order(endpoint_hint):
        try:
            data = mesh_get(endpoint, task_id)
        except ProviderRequestFailed as e:
            if e.status != 404:
                raise
            print(f"[MESHY] Task {task_id} not found on {endpoint}")
            last_error = e
            continue
        return TaskSnapshot(endpoint=endpoint, raw_status=extract_raw_status(data), payload=data)

    raise last_error
