"""
Centralized configuration for Focus.

Settings come from focus.yaml (see focus.paths.config_path) with
environment variables layered on top:

    FOCUS_GATEWAY_URL   base URL of the remote record store
    FOCUS_API_KEY       API key sent as apikey + bearer token
    FOCUS_USER_ID       owner id used for every query
    FOCUS_LOG_LEVEL     root log level

Usage:
    from focus.config import load_settings

    settings = load_settings()
    settings.refresh_interval_seconds  # 300
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

import yaml

from focus import paths

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "http://127.0.0.1:54321"


@dataclass(frozen=True)
class Settings:
    gateway_url: str = DEFAULT_GATEWAY_URL
    api_key: str = ""
    user_id: int | None = None
    request_timeout: float = 30.0
    refresh_interval_seconds: int = 300
    reminder_lead_minutes: int = 5
    block_window_days_back: int = 7
    block_window_days_forward: int = 7
    meeting_window_days_back: int = 30
    meeting_window_days_forward: int = 90
    notification_namespace: str = "focus-"
    background_workers: int = 4
    log_level: str = "INFO"


# Fields that must be positive integers; anything else falls back to default.
_POSITIVE_INT_FIELDS = {
    "refresh_interval_seconds",
    "background_workers",
}
_NON_NEGATIVE_INT_FIELDS = {
    "reminder_lead_minutes",
    "block_window_days_back",
    "block_window_days_forward",
    "meeting_window_days_back",
    "meeting_window_days_forward",
}

_ENV_OVERRIDES = {
    "FOCUS_GATEWAY_URL": "gateway_url",
    "FOCUS_API_KEY": "api_key",
    "FOCUS_USER_ID": "user_id",
    "FOCUS_LOG_LEVEL": "log_level",
}


def _coerce(name: str, value, default):
    """Validate one raw setting, returning the default when invalid."""
    if name in _POSITIVE_INT_FIELDS or name in _NON_NEGATIVE_INT_FIELDS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning(f"Invalid value for {name}: {value!r}, using {default}")
            return default
        floor = 1 if name in _POSITIVE_INT_FIELDS else 0
        if value < floor:
            logger.warning(f"Out of range value for {name}: {value!r}, using {default}")
            return default
        return int(value)

    if name == "request_timeout":
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            logger.warning(f"Invalid request_timeout: {value!r}, using {default}")
            return default
        return float(value)

    if name == "user_id":
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid user_id: {value!r}")
            return default

    if name == "log_level":
        level = str(value).upper()
        if level not in logging.getLevelNamesMapping():
            logger.warning(f"Unknown log level: {value!r}, using {default}")
            return default
        return level

    if value is None:
        return default
    return str(value)


def load_settings(path: Optional[str] = None, environ: Optional[dict] = None) -> Settings:
    """
    Load settings from YAML, then apply environment overrides.

    An explicit path that does not exist raises FileNotFoundError. The
    default path is optional; when missing, built-in defaults are used.

    Raises:
        FileNotFoundError if an explicit config path doesn't exist.
        ValueError if the file is not a YAML mapping.
        yaml.YAMLError if the file is invalid YAML.
    """
    environ = os.environ if environ is None else environ
    config_path = Path(path) if path else paths.config_path()

    raw: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"{config_path} must contain a mapping of settings")
        raw = data
    elif path:
        raise FileNotFoundError(f"Focus settings not found: {config_path}")
    else:
        logger.debug(f"No settings file at {config_path}, using defaults")

    defaults = Settings()
    known = {f.name for f in fields(Settings)}
    values = {}
    for name, value in raw.items():
        if name not in known:
            logger.warning(f"Ignoring unknown setting: {name}")
            continue
        values[name] = _coerce(name, value, getattr(defaults, name))

    for env_name, field_name in _ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[field_name] = _coerce(
                field_name, environ[env_name], values.get(field_name, getattr(defaults, field_name))
            )

    return replace(defaults, **values)
