"""
Path utilities for logs and the on-disk result cache.

Centralizes directory behavior:
- Expands `~` and environment variables for user-supplied paths
- Uses `IMAGE_FOR_ME_DATA_DIR` as the base directory when set
- Creates directories as needed
"""

from __future__ import annotations

import os
from pathlib import Path

from .settings import Settings, get_settings


def expand_path(path: str) -> Path:
    """Expand `~` and environment variables in a path string."""
    expanded = os.path.expandvars(os.path.expanduser(path))
    return Path(expanded)


def get_data_directory(settings: Settings | None = None) -> Path:
    """Get the base directory for server state (logs and cache live under this)."""
    settings = settings or get_settings()
    if settings.data_dir:
        data_dir = expand_path(settings.data_dir)
    else:
        data_dir = Path.home() / ".image-for-me"

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_log_directory(settings: Settings | None = None) -> Path:
    """Get the directory for server logs."""
    settings = settings or get_settings()
    if settings.log_dir:
        log_dir = expand_path(settings.log_dir)
    else:
        log_dir = get_data_directory(settings) / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_cache_directory(settings: Settings | None = None) -> Path | None:
    """
    Get the directory for persisted cache entries.

    Returns None when persistence is off (no `CACHE_DIR` and `CACHE_PERSIST` unset).
    """
    settings = settings or get_settings()
    if settings.cache_dir:
        cache_dir = expand_path(settings.cache_dir)
    elif settings.cache_persist:
        cache_dir = get_data_directory(settings) / "cache"
    else:
        return None

    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir
