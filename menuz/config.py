"""
Settings for the Menuz backend, read from the environment once at import.

Usage:
    from menuz.config import config

    if config.MESHY_CONFIGURED:
        print("Meshy is ready")

Services read attributes at call time (``config.MESHY_API_KEY``) rather than
copying them into module constants, so a test can monkeypatch the instance.
"""

import os
from pathlib import Path
from typing import List
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


def _get_env(key: str, default: str = "") -> str:
    """Stripped env value, or default."""
    return os.getenv(key, default).strip()


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Truthy/falsy env flag; anything unrecognised keeps the default."""
    flag = _get_env(key).lower()
    if flag in ("1", "true", "yes", "on"):
        return True
    if flag in ("0", "false", "no", "off"):
        return False
    return default


def _get_env_int(key: str, default: int = 0) -> int:
    """Integer env value; unparsable input falls back to default."""
    raw = _get_env(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[CONFIG] {key}={raw!r} is not an integer, using {default}")
        return default


def _get_env_path(key: str, default: Path) -> Path:
    """Get a filesystem path, resolving relative values against the project root."""
    raw = _get_env(key)
    if not raw:
        return default
    path = Path(raw)
    if not path.is_absolute():
        path = Path(__file__).resolve().parent.parent / path
    return path


def _fix_database_url(url: str) -> str:
    """
    Normalize DATABASE_URL.
    Some hosts hand out 'postgres://' but psycopg3 requires 'postgresql://'.
    """
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


# Image extensions accepted for reference photos and scans.
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})


@dataclass
class Config:
    """
    Every setting the backend reads. Derived values are properties so a
    test can patch the raw field and see the effect immediately.
    """

    # ─────────────────────────────────────────────────────────────
    # Paths
    # ─────────────────────────────────────────────────────────────
    DATA_PATH: Path = field(
        default_factory=lambda: _get_env_path(
            "DATA_PATH", Path(__file__).resolve().parent.parent / "data" / "db.json"
        )
    )
    UPLOADS_DIR: Path = field(
        default_factory=lambda: _get_env_path(
            "UPLOADS_DIR", Path(__file__).resolve().parent.parent / "uploads"
        )
    )

    # ─────────────────────────────────────────────────────────────
    # Environment
    # ─────────────────────────────────────────────────────────────
    FLASK_ENV: str = field(default_factory=lambda: _get_env("FLASK_ENV", "production").lower())
    LOG_LEVEL: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO").upper())
    PRINT_ROUTES: bool = field(default_factory=lambda: _get_env_bool("PRINT_ROUTES", False))

    @property
    def IS_DEV(self) -> bool:
        """FLASK_ENV names a development environment."""
        return self.FLASK_ENV in ("development", "dev", "local")

    @property
    def IS_PROD(self) -> bool:
        return not self.IS_DEV

    # ─────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────
    PORT: int = field(default_factory=lambda: _get_env_int("PORT", 5170))
    HOST: str = field(default_factory=lambda: _get_env("HOST", "0.0.0.0"))

    # Absolute base URL of this backend, used to re-expose stored uploads
    # to the provider when ASSET_INPUT_MODE=url (e.g. https://menuz.example.com)
    PUBLIC_BASE_URL: str = field(default_factory=lambda: _get_env("PUBLIC_BASE_URL").rstrip("/"))

    # ─────────────────────────────────────────────────────────────
    # Database
    # ─────────────────────────────────────────────────────────────
    _DATABASE_URL_RAW: str = field(default_factory=lambda: _get_env("DATABASE_URL"))

    @property
    def DATABASE_URL(self) -> str:
        """DATABASE_URL with the postgres:// scheme rewritten for psycopg."""
        return _fix_database_url(self._DATABASE_URL_RAW)

    @property
    def HAS_DATABASE(self) -> bool:
        return bool(self._DATABASE_URL_RAW)

    APP_SCHEMA: str = field(default_factory=lambda: _get_env("APP_SCHEMA", "menuz"))
    DB_CONNECT_TIMEOUT: int = field(default_factory=lambda: _get_env_int("DB_CONNECT_TIMEOUT", 10))

    # ─────────────────────────────────────────────────────────────
    # Sessions
    # ─────────────────────────────────────────────────────────────
    SESSION_TTL_HOURS: int = field(default_factory=lambda: _get_env_int("SESSION_TTL_HOURS", 24))

    @property
    def SESSION_TTL_SECONDS(self) -> int:
        return self.SESSION_TTL_HOURS * 60 * 60

    # ─────────────────────────────────────────────────────────────
    # Uploads
    # ─────────────────────────────────────────────────────────────
    UPLOAD_MAX_FILES: int = field(default_factory=lambda: _get_env_int("UPLOAD_MAX_FILES", 20))
    UPLOAD_MAX_FILE_MB: int = field(default_factory=lambda: _get_env_int("UPLOAD_MAX_FILE_MB", 12))

    @property
    def UPLOAD_MAX_FILE_BYTES(self) -> int:
        return self.UPLOAD_MAX_FILE_MB * 1024 * 1024

    @property
    def MAX_CONTENT_LENGTH(self) -> int:
        """Request body ceiling: a full batch of maximum-size files plus form overhead."""
        return self.UPLOAD_MAX_FILES * self.UPLOAD_MAX_FILE_BYTES + 1024 * 1024

    # ─────────────────────────────────────────────────────────────
    # AWS S3
    # ─────────────────────────────────────────────────────────────
    AWS_REGION: str = field(default_factory=lambda: _get_env("AWS_REGION", "eu-west-2"))
    AWS_BUCKET_UPLOADS: str = field(default_factory=lambda: _get_env("AWS_BUCKET_UPLOADS"))
    AWS_ACCESS_KEY_ID: str = field(default_factory=lambda: _get_env("AWS_ACCESS_KEY_ID"))
    AWS_SECRET_ACCESS_KEY: str = field(default_factory=lambda: _get_env("AWS_SECRET_ACCESS_KEY"))
    S3_PRESIGN_SECONDS: int = field(default_factory=lambda: _get_env_int("S3_PRESIGN_SECONDS", 3600))

    @property
    def AWS_CONFIGURED(self) -> bool:
        return bool(self.AWS_BUCKET_UPLOADS and self.AWS_ACCESS_KEY_ID and self.AWS_SECRET_ACCESS_KEY)

    # ─────────────────────────────────────────────────────────────
    # CORS
    # ─────────────────────────────────────────────────────────────
    _ALLOWED_ORIGINS_RAW: str = field(default_factory=lambda: _get_env("ALLOWED_ORIGINS"))

    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """Comma-separated http(s) origins; dev falls back to the local Vite/Flask ports."""
        raw = self._ALLOWED_ORIGINS_RAW
        if not raw:
            if self.IS_DEV:
                return [
                    "http://localhost:3000",
                    "http://localhost:5170",
                    "http://localhost:5173",
                    "http://127.0.0.1:5170",
                    "http://127.0.0.1:5173",
                ]
            return []
        if raw == "*":
            return ["*"]
        candidates = (part.strip() for part in raw.split(","))
        return [o for o in candidates if o.startswith(("http://", "https://"))]

    @property
    def ALLOW_ALL_ORIGINS(self) -> bool:
        return self._ALLOWED_ORIGINS_RAW == "*"

    # ─────────────────────────────────────────────────────────────
    # Meshy (image-to-3D provider)
    # ─────────────────────────────────────────────────────────────
    MESHY_API_KEY: str = field(default_factory=lambda: _get_env("MESHY_API_KEY"))
    MESHY_API_BASE: str = field(
        default_factory=lambda: _get_env("MESHY_API_BASE", "https://api.meshy.ai/openapi/v1").rstrip("/")
    )
    MESHY_AI_MODEL: str = field(default_factory=lambda: _get_env("MESHY_AI_MODEL", "meshy-6"))
    _MESHY_MAX_REFERENCE_IMAGES_RAW: int = field(
        default_factory=lambda: _get_env_int("MESHY_MAX_REFERENCE_IMAGES", 4)
    )
    MESHY_TIMEOUT_SECONDS: int = field(default_factory=lambda: _get_env_int("MESHY_TIMEOUT_SECONDS", 60))
    MODEL_DOWNLOAD_TIMEOUT: int = field(default_factory=lambda: _get_env_int("MODEL_DOWNLOAD_TIMEOUT", 120))

    # "inline" embeds stored photos as data URIs, "url" hands the provider
    # PUBLIC_BASE_URL + /uploads/... instead.
    ASSET_INPUT_MODE: str = field(default_factory=lambda: _get_env("ASSET_INPUT_MODE", "inline").lower())

    @property
    def MESHY_CONFIGURED(self) -> bool:
        return bool(self.MESHY_API_KEY)

    @property
    def MESHY_MAX_REFERENCE_IMAGES(self) -> int:
        """Reference image cap per provider request, clamped to 1..8."""
        return max(1, min(8, self._MESHY_MAX_REFERENCE_IMAGES_RAW))

    # ─────────────────────────────────────────────────────────────
    # Logging & Debug
    # ─────────────────────────────────────────────────────────────
    def log_summary(self) -> None:
        """Startup banner with the effective settings (no secrets)."""
        print("=" * 60)
        print("[CONFIG] Menuz Backend Configuration")
        print("=" * 60)
        print(f"  Environment: {self.FLASK_ENV} (IS_DEV={self.IS_DEV})")
        print(f"  Port: {self.PORT}")
        print("-" * 60)
        print(f"  Database configured: {self.HAS_DATABASE}")
        if not self.HAS_DATABASE:
            print(f"  Local store: {self.DATA_PATH}")
        print(f"  AWS S3 configured: {self.AWS_CONFIGURED}")
        if not self.AWS_CONFIGURED:
            print(f"  Local uploads: {self.UPLOADS_DIR}")
        print(f"  Meshy configured: {self.MESHY_CONFIGURED} (model={self.MESHY_AI_MODEL})")
        print(f"  Max reference images: {self.MESHY_MAX_REFERENCE_IMAGES}")
        print(f"  Asset input mode: {self.ASSET_INPUT_MODE}")
        print("=" * 60)

    def validate(self) -> List[str]:
        """Human-readable warnings for risky or incomplete settings. Empty when all is well."""
        warnings = []

        if self.ASSET_INPUT_MODE not in ("inline", "url"):
            warnings.append(f"ASSET_INPUT_MODE={self.ASSET_INPUT_MODE!r} is unknown - falling back to inline")
        if self.ASSET_INPUT_MODE == "url" and not self.PUBLIC_BASE_URL:
            warnings.append("ASSET_INPUT_MODE=url requires PUBLIC_BASE_URL - stored photos will be skipped")

        if self.IS_PROD:
            if not self.HAS_DATABASE:
                warnings.append("DATABASE_URL not set - using the local JSON store")
            if not self.AWS_CONFIGURED:
                warnings.append("AWS S3 not configured - uploads are kept on local disk")
            if not self.MESHY_CONFIGURED:
                warnings.append("MESHY_API_KEY not set - AI generation is disabled")
            if not self.ALLOWED_ORIGINS:
                warnings.append("ALLOWED_ORIGINS not set - CORS will block requests")

        return warnings


# ─────────────────────────────────────────────────────────────
# Singleton instance
# ─────────────────────────────────────────────────────────────
try:
    config = Config()
    print(f"[CONFIG] Loaded successfully (IS_DEV={config.IS_DEV})")
except Exception as e:
    print(f"[CONFIG] FATAL: could not build settings: {e!r}")
    raise
