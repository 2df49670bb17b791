from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration assembled from environment variables."""

    supabase_url: str | None = None
    supabase_key: str | None = None
    storage_bucket: str = "design-files"
    http_timeout: float = 30.0
    enforce_forward_transitions: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])
    log_level: str = "INFO"

    @property
    def uses_remote_backend(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> "Settings":
        origins_env = os.getenv("API_CORS_ORIGINS", "")
        origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
        defaults = cls()
        return cls(
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_KEY") or None,
            storage_bucket=os.getenv("GOGOCAE_STORAGE_BUCKET") or defaults.storage_bucket,
            http_timeout=_env_float("GOGOCAE_HTTP_TIMEOUT", defaults.http_timeout),
            enforce_forward_transitions=_env_flag("GOGOCAE_ENFORCE_FORWARD_TRANSITIONS"),
            cors_origins=origins or defaults.cors_origins,
            log_level=(os.getenv("GOGOCAE_LOG_LEVEL") or defaults.log_level).upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install one stream handler on the package logger."""

    logger = logging.getLogger("gogocae")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(getattr(handler, "_gogocae", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handler._gogocae = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
