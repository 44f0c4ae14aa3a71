"""
app/paths.py -- User-level settings location.

Uses platformdirs for the per-user configuration directory.  The
``settings.json`` found there holds defaults that every project's
``.writerdown.json`` is merged over.
"""

from __future__ import annotations

import logging
import os

from platformdirs import user_config_dir

from engine.utils import safe_read_json

logger = logging.getLogger(__name__)

_APP_NAME = "WriterDown"
_APP_AUTHOR = "WriterDown"

SETTINGS_FILE_NAME = "settings.json"


def get_user_config_dir() -> str:
    """Return the platform-appropriate user config directory."""
    return user_config_dir(_APP_NAME, _APP_AUTHOR)


def get_user_settings_path() -> str:
    return os.path.join(get_user_config_dir(), SETTINGS_FILE_NAME)


def load_user_settings(path: str | None = None) -> dict:
    """Read the user settings file; missing or invalid files yield ``{}``."""
    path = path or get_user_settings_path()
    data = safe_read_json(path, default={})
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: not a JSON object", path)
        return {}
    return data
