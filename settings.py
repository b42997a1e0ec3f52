from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Optional


_STORE_CONFIG_ENV = "CONSUMO_STORE_CONFIG"
_APP_ID_ENV = "CONSUMO_APP_ID"
_AUTH_TOKEN_ENV = "CONSUMO_INITIAL_AUTH_TOKEN"
_NOTICE_SECONDS_ENV = "CONSUMO_NOTICE_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_STORE_CONFIG: Dict[str, Any] = {"persistence_path": "./tmp/mock_firestore.json"}


@dataclass(frozen=True)
class Settings:
    store_config: Dict[str, Any] = field(hash=False)
    app_id: str
    initial_auth_token: Optional[str]
    notice_seconds: float
    log_level: str

    @property
    def has_store_config(self) -> bool:
        return bool(self.store_config)

    def collection_path(self, name: str) -> str:
        return f"artifacts/{self.app_id}/public/data/{name}"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_store_config(default: Dict[str, Any]) -> Dict[str, Any]:
    value = os.getenv(_STORE_CONFIG_ENV)
    if value is None:
        return dict(default)
    candidate = value.strip()
    if not candidate:
        return {}
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_config=_read_store_config(DEFAULT_STORE_CONFIG),
        app_id=_read_str_env(_APP_ID_ENV, "default-consumo-app"),
        initial_auth_token=_read_optional_env(_AUTH_TOKEN_ENV, None),
        notice_seconds=_read_positive_float(_NOTICE_SECONDS_ENV, 3.0),
        log_level=_read_log_level("INFO"),
    )
