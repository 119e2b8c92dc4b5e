#!/usr/bin/env python3
"""
Lifecycle hook discovery.

Hook files live in the working directory and follow this grammar:

    cmp.<stage>.<ext>                                  global
    cmp.<stage>.<platform>[+<binary>].<ext>            global, constrained
    cmp.<stage>.<command>.<ext>                        scoped to --cmp-hook <command>
    cmp.<stage>.<command>.<platform>[+<binary>].<ext>  scoped, constrained

Examples:
    cmp.pre.sh              runs before every invocation
    cmp.post.linux.sh       runs after every invocation, on Linux only
    cmp.pre.+python3.py     runs `python3 cmp.pre.+python3.py`
    cmp.pre.seed.macos+bash.sh
                            runs `bash ...` on macOS when --cmp-hook seed is given

Plain hooks run before constrained ones; within a group, files run in name order.
"""

from __future__ import annotations

import logging
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .config_constants import (
    HOOK_BINARY_SEPARATOR,
    HOOK_DELIMITER,
    HOOK_MARKER,
    HOOK_STAGES,
    KEY_HOOK_BINARY,
    KEY_HOOK_COMMAND,
    KEY_HOOK_EVENT,
    KEY_HOOK_FILE,
    KEY_HOOK_PLATFORM,
    PLATFORM_ALIASES,
    env_key,
)


logger = logging.getLogger(__name__)

RANK_PLAIN = 0
RANK_CONSTRAINED = 1


@dataclass(frozen=True)
class HookDescriptor:
    stage: str
    command: Optional[str]
    platform: Optional[str]
    binary: Optional[str]
    ext: str
    file: Path
    rank: int

    def argv(self) -> list[str]:
        """Command line for this hook: `<binary> <file>` or the file itself."""
        if self.binary:
            return shlex.split(self.binary) + [str(self.file)]
        return [str(self.file)]

    def context_env(self, prefix: str) -> dict[str, str]:
        """Hook context variables exposed to the hook process."""
        return {
            env_key(prefix, KEY_HOOK_EVENT): self.stage,
            env_key(prefix, KEY_HOOK_COMMAND): self.command or "",
            env_key(prefix, KEY_HOOK_PLATFORM): self.platform or "",
            env_key(prefix, KEY_HOOK_BINARY): self.binary or "",
            env_key(prefix, KEY_HOOK_FILE): str(self.file),
        }


def current_platforms(platform: Optional[str] = None) -> tuple[str, ...]:
    """
    Accepted platform names for the running interpreter.

    Examples:
        >>> current_platforms('win32')
        ('win32', 'windows')
        >>> current_platforms('freebsd13')
        ('freebsd13',)
    """
    name = platform or sys.platform
    return PLATFORM_ALIASES.get(name, (name,))


def _split_constraint(segment: str) -> tuple[Optional[str], Optional[str]]:
    platform, _, binary = segment.partition(HOOK_BINARY_SEPARATOR)
    return platform or None, binary or None


def parse_hook_name(name: str, directory: Path, command: Optional[str] = None) -> Optional[HookDescriptor]:
    """
    Parse a file name against the hook grammar.

    The number of segments is interpreted relative to the request: for a
    global request four segments mean a platform constraint, for a scoped
    request they mean the command segment.

    Returns None if the name does not fit the grammar for this request.
    """
    parts = name.split(HOOK_DELIMITER)
    if len(parts) < 3 or parts[0] != HOOK_MARKER or not all(parts):
        return None

    stage, ext = parts[1], parts[-1]
    middle = parts[2:-1]

    if command is not None:
        if not middle or middle[0] != command:
            return None
        middle = middle[1:]

    if len(middle) > 1:
        return None

    platform, binary = _split_constraint(middle[0]) if middle else (None, None)
    return HookDescriptor(
        stage=stage,
        command=command,
        platform=platform,
        binary=binary,
        ext=ext,
        file=(directory / name).resolve(),
        rank=RANK_CONSTRAINED if middle else RANK_PLAIN,
    )


def filter_hooks(
    hooks: Sequence[HookDescriptor],
    stage: str,
    platforms: Sequence[str],
) -> list[HookDescriptor]:
    """Keep hooks for this stage whose platform constraint (if any) matches."""
    selected = []
    for hook in hooks:
        if hook.stage != stage:
            continue
        if hook.platform and hook.platform not in platforms:
            logger.debug(f"  Skipping hook for platform {hook.platform}: {hook.file.name}")
            continue
        selected.append(hook)
    return selected


def order_hooks(hooks: Sequence[HookDescriptor]) -> list[HookDescriptor]:
    """Plain hooks first, then constrained hooks; stable within each group."""
    return sorted(hooks, key=lambda hook: hook.rank)


def discover_hooks(
    stage: str,
    directory: Path,
    command: Optional[str] = None,
    platform: Optional[str] = None,
) -> list[HookDescriptor]:
    """
    Scan directory (non-recursively) for hooks of the given stage.

    Args:
        stage: 'pre' or 'post'
        directory: directory to scan (the invocation working directory)
        command: hook name for scoped hooks, None for global hooks
        platform: sys.platform override (tests)

    Returns:
        Ordered list of applicable hooks; empty if the directory is unreadable
    """
    if stage not in HOOK_STAGES:
        raise ValueError(f"Unknown hook stage: {stage!r} (expected one of {HOOK_STAGES})")

    try:
        names = sorted(entry.name for entry in directory.iterdir() if entry.is_file())
    except OSError as e:
        logger.warning(f"Cannot scan {directory} for hooks: {e}")
        return []

    parsed = [
        hook for hook in (parse_hook_name(name, directory, command) for name in names)
        if hook is not None
    ]
    hooks = order_hooks(filter_hooks(parsed, stage, current_platforms(platform)))

    scope = f" ({command})" if command else ""
    logger.debug(f"Discovered {len(hooks)} {stage}{scope} hook(s): {[h.file.name for h in hooks]}")
    return hooks
