#!/usr/bin/env python3
"""
Layered dotenv loading.

Merge order (later wins):
    inherited environment → .env → .env.local → .env.<profile> → .env.<profile>.local

Design Principles:
1. The inherited process environment is the base layer; file values override it
2. A malformed or unreadable file contributes nothing (whole file rejected)
3. Derived keys are mirrored into the process environment for hooks/compose
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from .config_constants import (
    KEY_PROFILE_COUNT,
    KEY_PROFILE_INDEXED,
    KEY_PROFILES,
    LOCAL_SUFFIX,
    env_key,
)

if TYPE_CHECKING:
    from .settings import WrapperSettings


logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_.\-]*")
INLINE_COMMENT_PATTERN = re.compile(r"\s+#")
ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)
ESCAPES = {"n": "\n", "r": "\r", "t": "\t", '"': '"', "\\": "\\", "$": "$"}


class EnvFileError(ValueError):
    """Raised when a dotenv file cannot be read or parsed."""


# ============================================================================
# Parsing
# ============================================================================


def _find_closing_quote(body: str, quote: str) -> int:
    if quote == "'":
        return body.find("'")

    escaped = False
    for idx, char in enumerate(body):
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == quote:
            return idx
    return -1


def _unescape(value: str) -> str:
    return ESCAPE_PATTERN.sub(lambda m: ESCAPES.get(m.group(1), m.group(0)), value)


def parse_env_text(text: str, source: str = "<string>") -> dict[str, str]:
    """
    Parse dotenv-formatted text into a flat dict.

    Supported syntax:
    - blank lines and # comments
    - optional leading `export `
    - KEY=value (inline ` # comment` stripped, whitespace trimmed)
    - KEY='literal value'
    - KEY="escaped\\nvalue" (may span multiple lines)

    Raises:
        EnvFileError: on a line without '=', an invalid key or an unterminated quote
    """
    values: dict[str, str] = {}
    lines = text.splitlines()
    idx = 0

    while idx < len(lines):
        line_num = idx + 1
        line = lines[idx].strip()
        idx += 1

        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[len("export "):].lstrip()

        if "=" not in line:
            raise EnvFileError(f"{source}:{line_num}: expected KEY=VALUE, got {line!r}")

        key, rest = line.split("=", 1)
        key = key.strip()
        if not KEY_PATTERN.fullmatch(key):
            raise EnvFileError(f"{source}:{line_num}: invalid key {key!r}")

        rest = rest.lstrip()
        if rest[:1] in ('"', "'"):
            quote = rest[0]
            body = rest[1:]
            end = _find_closing_quote(body, quote)
            while end == -1:
                if idx >= len(lines):
                    raise EnvFileError(f"{source}:{line_num}: unterminated {quote} quote for {key}")
                body = f"{body}\n{lines[idx]}"
                idx += 1
                end = _find_closing_quote(body, quote)

            trailing = body[end + 1:].strip()
            if trailing and not trailing.startswith("#"):
                raise EnvFileError(f"{source}:{line_num}: unexpected text after quoted value for {key}")

            value = body[:end]
            if quote == '"':
                value = _unescape(value)
        else:
            value = INLINE_COMMENT_PATTERN.split(rest, 1)[0].strip()

        values[key] = value

    return values


def load_env_file(env_file: Path | str) -> dict[str, str]:
    """
    Load one dotenv file.

    Raises:
        EnvFileError: if the file cannot be read, decoded or parsed
    """
    path = Path(env_file)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise EnvFileError(f"Cannot read {path}: {e}") from e

    return parse_env_text(text, str(path))


# ============================================================================
# Profiles
# ============================================================================


def _is_valid_profile(name: str) -> bool:
    if not name:
        return False
    separators = {"/", "\\", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    return not any(sep in name for sep in separators)


def normalize_profiles(values: Optional[Iterable[str] | str]) -> list[str]:
    """
    Flatten repeated and comma-separated profile values.

    Empty names and names containing a path separator are dropped; duplicates
    keep their first position.

    Examples:
        >>> normalize_profiles(["dev,ci", " dev ", "a/b", ""])
        ['dev', 'ci']
    """
    if not values:
        return []
    if isinstance(values, str):
        values = [values]

    profiles: list[str] = []
    for value in values:
        if not value:
            continue
        for part in value.split(","):
            name = part.strip()
            if not _is_valid_profile(name):
                if name:
                    logger.debug(f"Ignoring invalid profile name: {name!r}")
                continue
            if name not in profiles:
                profiles.append(name)
    return profiles


# ============================================================================
# Effective environment
# ============================================================================


class EffectiveEnvironment(Mapping):
    """
    Merged key/value environment for one invocation.

    Read-only except through export()/unset(), which also write through to the
    process environment so every child process observes derived keys.
    """

    def __init__(self, values: Mapping[str, str], process_env: Optional[MutableMapping[str, str]] = None):
        self._values = dict(values)
        self.process_env = os.environ if process_env is None else process_env

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def export(self, key: str, value: str) -> None:
        self._values[key] = value
        self.process_env[key] = value

    def unset(self, key: str) -> None:
        self._values.pop(key, None)
        self.process_env.pop(key, None)

    def child_env(self, extra: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Return a plain dict suitable for subprocess env=."""
        env = dict(self._values)
        if extra:
            env.update(extra)
        return env


def apply_profile_keys(env: EffectiveEnvironment, prefix: str, profiles: list[str]) -> None:
    """
    Export {prefix}PROFILES, {prefix}PROFILE_COUNT and {prefix}PROFILE_<i>.

    Indexed keys left over from an earlier, longer profile list are removed.
    With no profiles every bookkeeping key is removed.
    """
    indexed = re.compile(rf"{re.escape(env_key(prefix, KEY_PROFILE_INDEXED))}(\d+)")

    for key in set(env) | set(env.process_env):
        match = indexed.fullmatch(key)
        if match and int(match.group(1)) >= len(profiles):
            env.unset(key)

    if not profiles:
        env.unset(env_key(prefix, KEY_PROFILES))
        env.unset(env_key(prefix, KEY_PROFILE_COUNT))
        return

    env.export(env_key(prefix, KEY_PROFILES), ",".join(profiles))
    env.export(env_key(prefix, KEY_PROFILE_COUNT), str(len(profiles)))
    for idx, profile in enumerate(profiles):
        env.export(env_key(prefix, f"{KEY_PROFILE_INDEXED}{idx}"), profile)


# ============================================================================
# Layer discovery and merge
# ============================================================================


def discover_env_files(
    base_dir: Path,
    dotenv_prefix: str,
    profiles: Iterable[str] = (),
    include_profile_files: bool = True,
) -> list[Path]:
    """
    Return existing dotenv files in merge order.

    Order: {prefix}, {prefix}.local, then {prefix}.{p}, {prefix}.{p}.local per profile.
    """
    candidates = [
        base_dir / dotenv_prefix,
        base_dir / f"{dotenv_prefix}{LOCAL_SUFFIX}",
    ]
    if include_profile_files:
        for profile in profiles:
            candidates.append(base_dir / f"{dotenv_prefix}.{profile}")
            candidates.append(base_dir / f"{dotenv_prefix}.{profile}{LOCAL_SUFFIX}")

    return [path.resolve() for path in candidates if path.is_file()]


@dataclass
class LayeredEnv:
    env: EffectiveEnvironment
    env_files: list[Path] = field(default_factory=list)
    profiles: list[str] = field(default_factory=list)


def merge_env_layers(
    env_files: Iterable[Path],
    base_env: Mapping[str, str],
) -> dict[str, str]:
    """
    Merge dotenv files over base_env, later files overriding earlier ones.
    """
    merged = dict(base_env)
    for env_file in env_files:
        try:
            values = load_env_file(env_file)
        except EnvFileError as e:
            logger.warning(f"Skipping env file (contributes no values): {e}")
            continue

        logger.debug(f"Loaded {len(values)} value(s) from {env_file}")
        merged.update(values)
    return merged


def resolve_env_layers(
    settings: "WrapperSettings",
    process_env: Optional[MutableMapping[str, str]] = None,
) -> LayeredEnv:
    """
    Build the effective environment for an invocation.

    Args:
        settings: resolved wrapper settings (base directory, prefixes, profiles)
        process_env: environment to seed from and export into (default: os.environ)

    Returns:
        LayeredEnv with the effective environment, merged files and active profiles
    """
    target = os.environ if process_env is None else process_env
    profiles = normalize_profiles(settings.profiles)

    env_files = discover_env_files(
        settings.cwd,
        settings.dotenv_prefix,
        profiles,
        include_profile_files=settings.profile_files,
    )
    logger.debug(f"Env files in merge order: {[str(f) for f in env_files]}")

    env = EffectiveEnvironment(merge_env_layers(env_files, target), process_env=target)
    apply_profile_keys(env, settings.prefix, profiles)

    return LayeredEnv(env=env, env_files=env_files, profiles=profiles)
