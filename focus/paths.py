from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "FOCUS_HOME"
APP_ENV_CONFIG = "FOCUS_CONFIG"


def app_home() -> Path:
    """
    User-writable home for Focus.
    Override with FOCUS_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".focus").resolve()


def config_dir() -> Path:
    return app_home() / "config"


def config_path() -> Path:
    """
    Canonical settings file.

    Resolution order:
    1. FOCUS_CONFIG env var (explicit override)
    2. ~/.focus/config/focus.yaml (default)
    """
    if os.environ.get(APP_ENV_CONFIG):
        return Path(os.environ[APP_ENV_CONFIG]).expanduser().resolve()
    return config_dir() / "focus.yaml"
