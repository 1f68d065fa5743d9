"""
murmur.config — Runtime settings read from the environment.

    MURMUR_DB_PATH              SQLite file ("" or ":memory:" for in-memory)
    MURMUR_SIGNING_KEY          hex Ed25519 seed used to sign commitment roots
    MURMUR_ENABLE_SCHEDULER     "1"/"true" starts the hourly scheduler with the app
    MURMUR_LOG_LEVEL            logging level name (default INFO)
    MURMUR_VIOLATION_THRESHOLD  percent variance above which a score is flagged
    ADMIN_API_KEY               key required by X-Admin-Key on admin routes
    ALLOWED_ORIGINS             comma-separated CORS origins
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from murmur.integrity.merkle import DEFAULT_VIOLATION_THRESHOLD

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUTHY


@dataclass
class Settings:
    db_path: str = "murmur.db"
    signing_key: Optional[str] = None
    enable_scheduler: bool = False
    log_level: str = "INFO"
    violation_threshold: float = DEFAULT_VIOLATION_THRESHOLD
    admin_api_key: str = ""
    allowed_origins: list[str] = field(default_factory=list)

    @property
    def in_memory(self) -> bool:
        return self.db_path in ("", ":memory:")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        origins = env.get("ALLOWED_ORIGINS", "")
        threshold = env.get("MURMUR_VIOLATION_THRESHOLD", "")
        try:
            violation_threshold = float(threshold) if threshold else DEFAULT_VIOLATION_THRESHOLD
        except ValueError:
            raise ValueError(
                f"MURMUR_VIOLATION_THRESHOLD must be a number, got {threshold!r}"
            ) from None
        return cls(
            db_path=env.get("MURMUR_DB_PATH", "murmur.db"),
            signing_key=env.get("MURMUR_SIGNING_KEY") or None,
            enable_scheduler=_env_bool(env.get("MURMUR_ENABLE_SCHEDULER")),
            log_level=env.get("MURMUR_LOG_LEVEL", "INFO"),
            violation_threshold=violation_threshold,
            admin_api_key=env.get("ADMIN_API_KEY", ""),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


__all__ = ["Settings", "DEFAULT_VIOLATION_THRESHOLD"]
