#!/usr/bin/env python3
"""Build the compose argument vector."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Optional, Sequence

from .config_constants import KEY_PROJECT_NAME, env_key
from .dotenv_layers import EffectiveEnvironment


logger = logging.getLogger(__name__)


def resolve_project_name(
    project_name: Optional[str],
    env: EffectiveEnvironment,
    prefix: str,
) -> str:
    """
    Explicit option wins over {prefix}PROJECT_NAME; the result is exported back.
    """
    key = env_key(prefix, KEY_PROJECT_NAME)
    name = project_name or env.get(key) or ""
    if name:
        env.export(key, name)
    return name


def build_compose_args(
    project_name: Optional[str],
    env_files: Sequence[Path],
    env: EffectiveEnvironment,
    profiles: Sequence[str],
    extra_args: Sequence[str],
    prefix: str,
) -> list[str]:
    """
    Build arguments passed after the compose binary.

    Order: -p <name>, --profile <p>..., --env-file <f>..., passthrough args.
    Passthrough args are forwarded verbatim.
    """
    args: list[str] = []

    name = resolve_project_name(project_name, env, prefix)
    if name:
        args.extend(["-p", name])

    for profile in profiles:
        args.extend(["--profile", profile])

    for env_file in env_files:
        args.extend(["--env-file", str(env_file)])

    args.extend(extra_args)
    logger.debug(f"Compose args: {args}")
    return args


def compose_argv(compose_bin: str, args: Sequence[str]) -> list[str]:
    """
    Full argv for a delegate call: the split binary followed by args.

    Examples:
        >>> compose_argv('docker compose', ['up', '-d'])
        ['docker', 'compose', 'up', '-d']
    """
    return shlex.split(compose_bin) + list(args)


def format_command(argv: Sequence[str]) -> str:
    """Shell-quoted rendering of argv for logs."""
    return shlex.join(argv)
