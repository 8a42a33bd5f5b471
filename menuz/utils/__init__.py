"""Utility helpers for the Menuz backend."""

from .helpers import (
    file_ext,
    get_content_type_for_extension,
    image_mime_for_extension,
    is_remote_http_url,
    log_event,
    next_timestamp,
    normalize_slug,
    now_iso,
    now_s,
    sha256_hex,
    truncate,
    url_path_ext,
)

__all__ = [
    "file_ext",
    "get_content_type_for_extension",
    "image_mime_for_extension",
    "is_remote_http_url",
    "log_event",
    "next_timestamp",
    "normalize_slug",
    "now_iso",
    "now_s",
    "sha256_hex",
    "truncate",
    "url_path_ext",
]
