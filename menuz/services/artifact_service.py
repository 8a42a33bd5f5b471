"""
Pull provider-hosted model files into durable storage.

Keys are fresh ``models/<uuid>.<fmt>`` names, never derived from the source
URL, so two jobs can't collide and storage stays flat.
"""

from __future__ import annotations

import uuid

import requests

from menuz.config import config
from menuz.services.blob_store import BlobStore, BlobStoreError
from menuz.utils.helpers import get_content_type_for_extension, is_remote_http_url

MODEL_FORMATS = ("glb", "usdz")


class DownloadFailed(Exception):
    """Artifact download answered non-2xx (status), or never answered or could not be stored (status 0)."""

    def __init__(self, status: int, url: str = "", message: str = ""):
        self.status = status
        self.url = url
        super().__init__(message or f"download failed with status {status}")


def persist_artifact(remote_url: str, fmt: str, *, blob_store: BlobStore) -> str:
    """
    Download ``remote_url`` and store it as a ``fmt`` model.

    Returns the ``/uploads/models/...`` reference, or '' when the URL is
    not a remote http(s) URL.
    """
    if fmt not in MODEL_FORMATS:
        raise ValueError(f"unsupported model format: {fmt}")
    if not is_remote_http_url(remote_url):
        return ""

    try:
        resp = requests.get(remote_url, timeout=config.MODEL_DOWNLOAD_TIMEOUT)
    except requests.RequestException as e:
        raise DownloadFailed(0, remote_url, f"download failed: {e}")
    if not resp.ok:
        raise DownloadFailed(resp.status_code, remote_url)

    key = f"models/{uuid.uuid4().hex}.{fmt}"
    try:
        ref = blob_store.put(key, resp.content, get_content_type_for_extension(f".{fmt}"))
    except BlobStoreError as e:
        raise DownloadFailed(0, remote_url, str(e))
    print(f"[ARTIFACT] Stored {fmt} ({len(resp.content)} bytes) -> {ref}")
    return ref
