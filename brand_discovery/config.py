"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

# Keys shipped in examples and templates; never valid against the live API.
PLACEHOLDER_KEYS = frozenset({"demo-key"})

# Keepa rejects /query selections with perPage below 50, even though only the
# first few ASINs are hydrated.
QUERY_PAGE_SIZE = 50

DEFAULT_BASE_URL = "https://api.keepa.com"
DEFAULT_DOMAIN_ID = 1  # Amazon.com
DEFAULT_BATCH_SIZE = 5


def _get_env(environ: Mapping[str, str], name: str, default: str) -> str:
    value = environ.get(name)
    return value if value is not None else default


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = _get_env(environ, name, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _get_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _get_env(environ, name, str(default))
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Settings container with environment variable overrides."""

    keepa_key: str = ""
    keepa_base_url: str = DEFAULT_BASE_URL
    domain_id: int = DEFAULT_DOMAIN_ID
    batch_size: int = DEFAULT_BATCH_SIZE
    request_timeout_seconds: float = 15.0
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)

    @property
    def keepa_key_configured(self) -> bool:
        key = self.keepa_key.strip()
        return bool(key) and key not in PLACEHOLDER_KEYS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        batch_size = _get_int(env, "KEEPA_BATCH_SIZE", DEFAULT_BATCH_SIZE)
        if batch_size < 1:
            raise ValueError(f"KEEPA_BATCH_SIZE must be at least 1, got {batch_size}")
        timeout = _get_float(env, "KEEPA_TIMEOUT_SECONDS", 15.0)
        if timeout <= 0:
            raise ValueError(f"KEEPA_TIMEOUT_SECONDS must be positive, got {timeout}")

        origins = tuple(
            origin.strip()
            for origin in _get_env(env, "CORS_ORIGINS", "*").split(",")
            if origin.strip()
        )
        return cls(
            keepa_key=_get_env(env, "KEEPA_KEY", "").strip(),
            keepa_base_url=_get_env(env, "KEEPA_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            domain_id=_get_int(env, "KEEPA_DOMAIN", DEFAULT_DOMAIN_ID),
            batch_size=batch_size,
            request_timeout_seconds=timeout,
            log_level=_get_env(env, "LOG_LEVEL", "INFO"),
            cors_origins=origins or ("*",),
        )


settings = Settings.from_env()
