from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from pulse.constants import (
    CACHE_DEFAULT_TTL,
    CACHE_HOT_TTL,
    LLM_API_URL,
    LLM_MODEL,
    REDIS_DEFAULT_PORT,
)

CONFIG_DIR = Path.home() / ".config" / "pulse"
CONFIG_FILE = CONFIG_DIR / "config.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_config() -> dict:
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            data = json.load(f)
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


@dataclass
class Settings:
    """Runtime knobs for the cache, dedupe and generation core."""

    llm_api_key: Optional[str] = None
    llm_api_url: str = LLM_API_URL
    llm_model: str = LLM_MODEL
    redis_url: Optional[str] = None
    redis_host: Optional[str] = None
    redis_port: int = REDIS_DEFAULT_PORT
    redis_password: Optional[str] = None
    redis_db: int = 0
    default_ttl: int = CACHE_DEFAULT_TTL
    hot_ttl: int = CACHE_HOT_TTL
    warmup_enabled: bool = True
    degrade_enabled: bool = True
    coalesce_generation: bool = False
    log_level: str = "INFO"

    @property
    def redis_configured(self) -> bool:
        return bool(self.redis_url or self.redis_host)


# setting name -> environment variables checked in order
_ENV_KEYS: dict[str, tuple[str, ...]] = {
    "llm_api_key": ("LLM_API_KEY", "GLM_API_KEY"),
    "llm_api_url": ("LLM_API_URL",),
    "llm_model": ("LLM_MODEL",),
    "redis_url": ("REDIS_URL",),
    "redis_host": ("REDIS_HOST",),
    "redis_port": ("REDIS_PORT",),
    "redis_password": ("REDIS_PASSWORD",),
    "redis_db": ("REDIS_DB",),
    "default_ttl": ("CACHE_DEFAULT_TTL",),
    "hot_ttl": ("CACHE_HOT_TTL",),
    "warmup_enabled": ("CACHE_WARMUP_ENABLED",),
    "degrade_enabled": ("CACHE_DEGRADE_ENABLED",),
    "coalesce_generation": ("NEWS_COALESCE_GENERATION",),
    "log_level": ("LOG_LEVEL",),
}

_INT_FIELDS = {"redis_port", "redis_db", "default_ttl", "hot_ttl"}
_BOOL_FIELDS = {"warmup_enabled", "degrade_enabled", "coalesce_generation"}


def _coerce(name: str, raw: object) -> object:
    if name in _INT_FIELDS:
        return int(str(raw))
    if name in _BOOL_FIELDS:
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in _TRUE_VALUES
    return str(raw)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from defaults, then the JSON config file, then the environment."""
    if env is None:
        env = os.environ

    values: dict[str, object] = {}
    file_config = load_config()
    for name in _ENV_KEYS:
        if file_config.get(name) is not None:
            values[name] = file_config[name]

    for name, env_names in _ENV_KEYS.items():
        for env_name in env_names:
            raw = env.get(env_name)
            if raw not in (None, ""):
                values[name] = raw
                break

    coerced: dict[str, object] = {}
    for name, raw in values.items():
        try:
            coerced[name] = _coerce(name, raw)
        except ValueError:
            raise ValueError(f"Invalid value for {name}: {raw!r}") from None
    return Settings(**coerced)  # type: ignore[arg-type]
