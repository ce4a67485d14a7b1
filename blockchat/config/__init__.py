"""Centralised configuration helper.

Every module reads runtime configuration through :func:`get_settings` instead
of calling ``os.getenv`` directly.  Values are loaded once per interpreter
from the process environment, after ``.env`` (or ``.env.test`` when
``NODE_ENV=test``) has been applied via *python-dotenv*.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``parents[2]`` is the repository root because this file lives at
# ``blockchat/config/__init__.py``.
_REPO_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool
    environment: Any
    log_level: str

    # Network -----------------------------------------------------------
    host: str
    port: int
    allowed_cors_origins: str

    # Uploads -----------------------------------------------------------
    uploads_dir: Path
    max_upload_bytes: int

    # Liveness ----------------------------------------------------------
    sweep_interval_seconds: float

    @property
    def cors_origins(self) -> list[str]:
        """Parsed ``ALLOWED_CORS_ORIGINS``; ``["*"]`` when unset."""
        origins = [o.strip() for o in self.allowed_cors_origins.split(",") if o.strip()]
        return origins or ["*"]

    # Helper for tests to override values at runtime -------------------
    def override(self, **kwargs: Any) -> None:  # pragma: no cover – test util
        for key, value in kwargs.items():
            if not hasattr(self, key):
                raise AttributeError(f"Settings has no attribute '{key}'")
            setattr(self, key, value)


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    node_env = os.getenv("NODE_ENV", "development")

    env_path = _REPO_ROOT / ".env"
    if node_env == "test" and (_REPO_ROOT / ".env.test").exists():
        env_path = _REPO_ROOT / ".env.test"

    if env_path.exists():
        # An explicitly exported TESTING flag wins over whatever the file says.
        current_testing = os.getenv("TESTING")
        load_dotenv(env_path, override=True)
        if current_testing:
            os.environ["TESTING"] = current_testing

    uploads_dir = os.getenv("UPLOADS_DIR")

    return Settings(
        testing=_truthy(os.getenv("TESTING")),
        environment=os.getenv("ENVIRONMENT"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3001")),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", "*"),
        uploads_dir=Path(uploads_dir) if uploads_dir else _REPO_ROOT / "uploads",
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))),
        sweep_interval_seconds=float(os.getenv("SWEEP_INTERVAL_SECONDS", "30")),
    )


def _validate(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup when a numeric setting is outside its usable range."""

    problems = []
    if not 0 < settings.port < 65536:
        problems.append(f"PORT must be between 1 and 65535 (got {settings.port})")
    if settings.sweep_interval_seconds <= 0:
        problems.append(f"SWEEP_INTERVAL_SECONDS must be positive (got {settings.sweep_interval_seconds})")
    if settings.max_upload_bytes <= 0:
        problems.append(f"MAX_UPLOAD_BYTES must be positive (got {settings.max_upload_bytes})")

    if problems:
        raise RuntimeError("Invalid configuration: " + "; ".join(problems))


# ---------------------------------------------------------------------------
# Singleton accessor – values loaded only once per interpreter
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:  # noqa: D401 – public accessor
    """Return the process-wide :class:`Settings` instance."""

    global _settings
    if _settings is None:
        settings = _load_settings()
        _validate(settings)
        _settings = settings
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next :func:`get_settings` reloads them."""

    global _settings
    _settings = None


__all__ = ["Settings", "get_settings", "reset_settings", "DEFAULT_MAX_UPLOAD_BYTES"]
