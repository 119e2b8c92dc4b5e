#!/usr/bin/env python3
"""
Compose binary detection.

Candidate lists are tried by priority; the first non-empty list is used
exclusively:
    --cmp-bin options > {prefix}COMPOSE_BIN (comma separated) > built-in defaults
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Callable, Iterable, Mapping, Optional, Sequence

from .config_constants import (
    DEFAULT_COMPOSE_BINS,
    KEY_COMPOSE_BIN,
    PROBE_ARGS,
    PROBE_TIMEOUT_SECONDS,
    env_key,
)


logger = logging.getLogger(__name__)

Probe = Callable[[str], bool]


class ComposeBinaryNotFoundError(RuntimeError):
    """No candidate compose binary passed the liveness probe."""

    def __init__(self, candidates: Sequence[str]):
        self.candidates = list(candidates)
        super().__init__(f"No compose binary detected. Tried: {' | '.join(self.candidates)}")


def parse_csv(value: Optional[str]) -> list[str]:
    """
    Split a comma-separated list, dropping empty entries.

    Examples:
        >>> parse_csv(' docker compose, ,podman-compose ')
        ['docker compose', 'podman-compose']
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def probe_compose_bin(candidate: str, timeout: float = PROBE_TIMEOUT_SECONDS) -> bool:
    """
    Run `<candidate> version` and report whether it exited 0.

    Output is discarded. Timeouts and spawn failures count as a failed probe.
    """
    try:
        argv = shlex.split(candidate) + list(PROBE_ARGS)
    except ValueError as e:
        logger.debug(f"  Probe {candidate!r}: cannot split ({e})")
        return False

    if not argv[:-len(PROBE_ARGS)]:
        return False

    try:
        result = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.debug(f"  Probe {candidate!r}: timed out after {timeout}s")
        return False
    except OSError as e:
        logger.debug(f"  Probe {candidate!r}: spawn failed ({e})")
        return False

    logger.debug(f"  Probe {candidate!r}: exit {result.returncode}")
    return result.returncode == 0


def select_candidates(
    user_bins: Iterable[str] = (),
    env_bins: Iterable[str] = (),
    default_bins: Iterable[str] = DEFAULT_COMPOSE_BINS,
) -> list[str]:
    """Return the first non-empty candidate list by priority."""
    for candidates in (list(user_bins), list(env_bins)):
        if candidates:
            return candidates
    return list(default_bins)


def detect_compose_bin(candidates: Sequence[str], probe: Probe = probe_compose_bin) -> str:
    """
    Return the first candidate whose probe succeeds.

    Raises:
        ComposeBinaryNotFoundError: if every candidate fails
    """
    logger.debug(f"Probing compose binaries: {list(candidates)}")
    for candidate in candidates:
        if probe(candidate):
            logger.debug(f"Selected compose binary: {candidate}")
            return candidate

    raise ComposeBinaryNotFoundError(candidates)


def resolve_compose_bin(
    user_bins: Iterable[str],
    env: Mapping[str, str],
    prefix: str,
    probe: Probe = probe_compose_bin,
) -> str:
    """Pick the candidate list for this invocation and detect a usable binary."""
    env_bins = parse_csv(env.get(env_key(prefix, KEY_COMPOSE_BIN)))
    return detect_compose_bin(select_candidates(user_bins, env_bins), probe=probe)
