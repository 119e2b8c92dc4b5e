"""compose-cat: pass-through wrapper for Docker/Podman Compose with env files and hooks."""

from __future__ import annotations

import os
from datetime import datetime, timezone

from .config_constants import BUILD_VERSION_ENV_VAR


def _build_date_version() -> str:
    override = os.getenv(BUILD_VERSION_ENV_VAR)
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%d")


__version__ = _build_date_version()
