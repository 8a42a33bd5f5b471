"""
Small pure helpers shared by services and routes: clocks, slugs, file
types, URL checks and scrubbed debug logging. Nothing here touches Flask.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import time
import unicodedata
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import unquote, urlparse


def now_s() -> int:
    """Unix time in whole seconds."""
    return int(time.time())


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with microseconds."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def next_timestamp(previous: str | None) -> str:
    """
    A fresh ISO timestamp that sorts strictly after ``previous``.

    Two writes inside the same clock tick would otherwise share an
    updatedAt, which breaks compare-and-swap on that field.
    """
    current = now_iso()
    if not previous or current > previous:
        return current
    try:
        bumped = datetime.fromisoformat(previous) + timedelta(microseconds=1)
    except ValueError:
        return current
    return bumped.isoformat(timespec="microseconds")


def truncate(value: Any, limit: int = 300) -> str:
    """String form of value cut to ``limit`` characters."""
    text = "" if value is None else str(value)
    return text[:limit]


def normalize_slug(text: str | None) -> str:
    """Lowercase ASCII slug with dashes, at most 64 chars."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text))
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_only.lower()).strip("-")
    return slug[:64]


def sha256_hex(value: str) -> str:
    """Hex SHA256 of a text value."""
    return hashlib.sha256(value.encode()).hexdigest()


def is_remote_http_url(value: Any) -> bool:
    """True for absolute http(s) URLs that carry a host."""
    if not isinstance(value, str) or not value:
        return False
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)


def file_ext(name: str | None) -> str:
    """Lowercased extension including the dot, or ''."""
    return os.path.splitext(name or "")[1].lower()


def url_path_ext(url: str) -> str:
    """Extension of the path component of a URL, or ''."""
    try:
        return file_ext(unquote(urlparse(url).path or ""))
    except ValueError:
        return ""


def get_content_type_for_extension(ext: str) -> str:
    """MIME type for a dotted extension; unknown ones are octet-stream."""
    known = {
        ".glb": "model/gltf-binary",
        ".gltf": "model/gltf+json",
        ".usdz": "model/vnd.usdz+zip",
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".webp": "image/webp",
    }
    return known.get((ext or "").lower(), "application/octet-stream")


def image_mime_for_extension(ext: str) -> str:
    """MIME type for an image extension, or '' when it is not an image."""
    mime = get_content_type_for_extension(ext)
    return mime if mime.startswith("image/") else ""


_logger = logging.getLogger("menuz.helpers")

_SECRET_WORDS = ("key", "token", "secret", "auth", "password")


def _mask_value(value: Any, limit: int = 400) -> str:
    try:
        text = json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = str(value)
    return text if len(text) <= limit else text[:limit] + "..."


def _scrub_secrets(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            k: "***" if any(word in str(k).lower() for word in _SECRET_WORDS) else _scrub_secrets(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [_scrub_secrets(v) for v in data]
    if isinstance(data, str) and data.startswith("data:"):
        return f"{data[:32]}...({len(data)} chars)"
    return data


def log_event(event_name: str, data: dict) -> None:
    """Lightweight debug logging that avoids leaking secrets or inline images."""
    _logger.info("[debug] %s :: %s", event_name, _mask_value(_scrub_secrets(data)))
