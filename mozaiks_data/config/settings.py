# mozaiks_data/config/settings.py
from __future__ import annotations

import os
import logging
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

logger = logging.getLogger("mozaiks_data.settings")


def _dotenv_enabled() -> bool:
    value = os.getenv("MOZAIKS_LOAD_DOTENV")
    if value is None:
        return True
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _env_bool(name: str, default: bool = False) -> bool:
    value = _env_str(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    value = _env_str(name)
    if value is None:
        return default
    try:
        return int(value)
    except Exception:
        return default


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _normalize_origin(origin: str) -> str:
    return origin.rstrip("/")


StoreBackend = Literal["mongo", "memory"]


def _normalize_choice(name: str, value: str | None, allowed: set[str], default: str) -> str:
    resolved = (value or "").strip().lower()
    if not resolved:
        return default
    if resolved not in allowed:
        raise RuntimeError(f"Invalid {name}: '{resolved}' (expected one of: {', '.join(sorted(allowed))})")
    return resolved


@dataclass(frozen=True)
class Settings:
    env: str
    store_backend: StoreBackend
    database_uri: str
    database_name: str
    plugins_collection: str
    organizations_collection: str
    plugin_collections_collection: str
    mongo_max_pool_size: int
    mongo_min_pool_size: int
    mongo_connect_timeout_ms: int
    mongo_server_selection_timeout_ms: int
    log_level: str
    logs_as_json: bool
    logs_base_dir: str | None
    max_request_body_bytes: int
    cors_origins: tuple[str, ...]
    host: str
    port: int
    # Ids pre-loaded into the in-memory backend for local runs.
    memory_seed_plugins: tuple[str, ...] = ()
    memory_seed_organizations: tuple[str, ...] = ()

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def load_settings() -> Settings:
    # Never override values already present in the process environment.
    if _dotenv_enabled():
        load_dotenv(override=False)

    env = (_env_str("ENV", "development") or "development").lower()
    store_backend = _normalize_choice("STORE_BACKEND", _env_str("STORE_BACKEND"), {"mongo", "memory"}, "mongo")

    database_uri = _env_str("DATABASE_URI", "mongodb://localhost:27017") or "mongodb://localhost:27017"
    database_name = _env_str("DATABASE_NAME") or ("zuri_core" if env == "production" else "zuri_core_dev")

    max_pool = _env_int("MONGO_MAX_POOL_SIZE", 100)
    min_pool = _env_int("MONGO_MIN_POOL_SIZE", 10)
    if min_pool > max_pool:
        logger.warning("MONGO_MIN_POOL_SIZE (%s) exceeds MONGO_MAX_POOL_SIZE (%s); clamping", min_pool, max_pool)
        min_pool = max_pool

    log_level = (_env_str("LOG_LEVEL", "INFO") or "INFO").upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise RuntimeError(f"Invalid LOG_LEVEL: '{log_level}'")

    port = _env_int("PORT", 8000)
    if not 0 < port < 65536:
        raise RuntimeError(f"Invalid PORT: {port}")

    return Settings(
        env=env,
        store_backend=store_backend,  # type: ignore[arg-type]
        database_uri=database_uri,
        database_name=database_name,
        plugins_collection=_env_str("PLUGINS_COLLECTION", "plugins") or "plugins",
        organizations_collection=_env_str("ORGANIZATIONS_COLLECTION", "organization") or "organization",
        plugin_collections_collection=_env_str("PLUGIN_COLLECTIONS_COLLECTION", "plugin_collections")
        or "plugin_collections",
        mongo_max_pool_size=max_pool,
        mongo_min_pool_size=min_pool,
        mongo_connect_timeout_ms=_env_int("MONGO_CONNECT_TIMEOUT_MS", 5000),
        mongo_server_selection_timeout_ms=_env_int("MONGO_SERVER_SELECTION_TIMEOUT_MS", 5000),
        log_level=log_level,
        logs_as_json=_env_bool("LOGS_AS_JSON", default=False),
        logs_base_dir=_env_str("LOGS_BASE_DIR"),
        max_request_body_bytes=_env_int("MAX_REQUEST_BODY_BYTES", 5 * 1024 * 1024),
        cors_origins=tuple(_normalize_origin(o) for o in _split_csv(_env_str("CORS_ORIGINS"))),
        host=_env_str("HOST", "0.0.0.0") or "0.0.0.0",
        port=port,
        memory_seed_plugins=tuple(_split_csv(_env_str("MEMORY_SEED_PLUGINS"))),
        memory_seed_organizations=tuple(_split_csv(_env_str("MEMORY_SEED_ORGANIZATIONS"))),
    )
