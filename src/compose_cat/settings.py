#!/usr/bin/env python3
"""Resolved wrapper settings threaded through every compose-cat call."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional

from .config_constants import (
    DEFAULT_DOTENV_PREFIX,
    DEFAULT_PREFIX,
    DOTENV_PREFIX_ENV_VAR,
    LOG_LEVEL_ENV_VAR,
    PREFIX_ENV_VAR,
    env_key,
)
from .dotenv_layers import normalize_profiles


@dataclass(frozen=True)
class WrapperSettings:
    """
    Options for one compose-cat invocation.

    Every value is resolved as: CLI option > process environment > default.
    """

    cwd: Path
    prefix: str = DEFAULT_PREFIX
    dotenv_prefix: str = DEFAULT_DOTENV_PREFIX
    compose_bins: tuple[str, ...] = ()
    hooks: tuple[str, ...] = ()
    profiles: tuple[str, ...] = ()
    project_name: Optional[str] = None
    profile_files: bool = True
    dry_run: bool = False
    log_level: str = "INFO"
    compose_args: tuple[str, ...] = ()

    def key(self, name: str) -> str:
        return env_key(self.prefix, name)

    @classmethod
    def resolve(
        cls,
        cwd: Optional[Path] = None,
        prefix: Optional[str] = None,
        dotenv_prefix: Optional[str] = None,
        compose_bins: Iterable[str] = (),
        hooks: Iterable[str] = (),
        profiles: Iterable[str] = (),
        project_name: Optional[str] = None,
        profile_files: bool = True,
        dry_run: bool = False,
        log_level: Optional[str] = None,
        compose_args: Iterable[str] = (),
        environ: Optional[Mapping[str, str]] = None,
    ) -> "WrapperSettings":
        env = os.environ if environ is None else environ

        return cls(
            cwd=Path(cwd or Path.cwd()).resolve(),
            prefix=prefix or env.get(PREFIX_ENV_VAR) or DEFAULT_PREFIX,
            dotenv_prefix=dotenv_prefix or env.get(DOTENV_PREFIX_ENV_VAR) or DEFAULT_DOTENV_PREFIX,
            compose_bins=tuple(b.strip() for b in compose_bins if b and b.strip()),
            hooks=tuple(h.strip() for h in hooks if h and h.strip()),
            profiles=tuple(normalize_profiles(profiles)),
            project_name=project_name or None,
            profile_files=profile_files,
            dry_run=dry_run,
            log_level=(log_level or env.get(LOG_LEVEL_ENV_VAR) or "INFO").upper(),
            compose_args=tuple(compose_args),
        )
