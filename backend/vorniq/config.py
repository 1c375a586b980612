"""
Environment-driven configuration.

All settings come from environment variables (DATABASE_URL, REDIS_URL,
AUTH_*, ENTITLEMENT_LEGACY_EMAIL_LOOKUP, ...). Settings are read once per
process by get_settings().
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./vorniq.db"
DEFAULT_SNAPSHOT_PATH = str(Path.home() / ".vorniq" / "principal.json")
DEFAULT_STATUS_CACHE_TTL_SECONDS = 300


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer environment value", extra={"variable": name, "value": raw})
        return default


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def normalize_database_url(url: str) -> str:
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass
class Settings:
    """Runtime settings for the entitlement engine and backend."""
    database_url: str = DEFAULT_DATABASE_URL
    redis_url: Optional[str] = None
    status_cache_ttl_seconds: int = DEFAULT_STATUS_CACHE_TTL_SECONDS

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = "authenticated"

    auth_server_url: Optional[str] = None
    auth_api_key: Optional[str] = None
    principal_snapshot_path: str = DEFAULT_SNAPSHOT_PATH

    # Rows written before id-keying stored the owner's email
    legacy_email_lookup: bool = True

    payment_webhook_secret: Optional[str] = None
    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        audience = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")
        return cls(
            database_url=normalize_database_url(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)),
            redis_url=os.getenv("REDIS_URL") or None,
            status_cache_ttl_seconds=_env_int("STATUS_CACHE_TTL_SECONDS", DEFAULT_STATUS_CACHE_TTL_SECONDS),
            jwt_secret=os.getenv("AUTH_JWT_SECRET", "change-me"),
            jwt_algorithm=os.getenv("AUTH_JWT_ALGORITHM", "HS256"),
            jwt_audience=audience.strip() or None,
            auth_server_url=os.getenv("AUTH_SERVER_URL") or None,
            auth_api_key=os.getenv("AUTH_API_KEY") or None,
            principal_snapshot_path=os.getenv("PRINCIPAL_SNAPSHOT_PATH", DEFAULT_SNAPSHOT_PATH),
            legacy_email_lookup=_env_bool("ENTITLEMENT_LEGACY_EMAIL_LOOKUP", True),
            payment_webhook_secret=os.getenv("PAYMENT_WEBHOOK_SECRET") or None,
            cors_origins=_env_list("CORS_ORIGINS"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests, config reload)."""
    global _settings
    _settings = None


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
