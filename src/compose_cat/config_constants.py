#!/usr/bin/env python3
"""
Default names and values for compose-cat.

This is the single source of truth for prefixes, env-key suffixes, file
names and built-in binary candidates. Other modules import from here instead
of hardcoding strings.

Naming Convention:
- {dotenv_prefix}                  = base config (committed)
- {dotenv_prefix}.local            = local overrides (gitignored)
- {dotenv_prefix}.{profile}        = profile config
- {dotenv_prefix}.{profile}.local  = local profile overrides
"""

# ============================================================================
# Prefixes
# ============================================================================

# Prefix for every derived environment key (CMP_STORE_DIR, CMP_PROFILES, ...)
DEFAULT_PREFIX = 'CMP_'

# Prefix of the layered dotenv files
DEFAULT_DOTENV_PREFIX = '.env'

# Suffix marking a local override file
LOCAL_SUFFIX = '.local'

# Process environment variables that override the defaults above
PREFIX_ENV_VAR = 'COMPOSE_CAT_PREFIX'
DOTENV_PREFIX_ENV_VAR = 'COMPOSE_CAT_DOTENV_PREFIX'
LOG_LEVEL_ENV_VAR = 'COMPOSE_CAT_LOG_LEVEL'
BUILD_VERSION_ENV_VAR = 'COMPOSE_CAT_BUILD_VERSION'

# ============================================================================
# Derived environment keys (appended to the active prefix)
# ============================================================================

KEY_BASE_DIR = 'BASE_DIR'
KEY_DATA_BASE_DIR = 'DATA_BASE_DIR'
KEY_INJECT_DIR = 'INJECT_DIR'
KEY_STORE_DIR = 'STORE_DIR'
KEY_COMPOSE_BIN = 'COMPOSE_BIN'
KEY_DETECTED_COMPOSE_BIN = 'DETECTED_COMPOSE_BIN'
KEY_PROJECT_NAME = 'PROJECT_NAME'
KEY_PROFILES = 'PROFILES'
KEY_PROFILE_COUNT = 'PROFILE_COUNT'
KEY_PROFILE_INDEXED = 'PROFILE_'

# Hook context keys, only visible to hook processes
KEY_HOOK_EVENT = 'HOOK_EVENT'
KEY_HOOK_COMMAND = 'HOOK_COMMAND'
KEY_HOOK_PLATFORM = 'HOOK_PLATFORM'
KEY_HOOK_BINARY = 'HOOK_BINARY'
KEY_HOOK_FILE = 'HOOK_FILE'

# ============================================================================
# Data directories (relative defaults)
# ============================================================================

DATA_BASE_DIRNAME = 'container-data'
INJECT_DIRNAME = 'inject'
STORE_DIRNAME = 'store'

# ============================================================================
# Compose binary detection
# ============================================================================

DEFAULT_COMPOSE_BINS = (
    'docker compose',
    'podman compose',
    'docker-compose',
    'podman-compose',
)

PROBE_ARGS = ('version',)
PROBE_TIMEOUT_SECONDS = 2.0

# ============================================================================
# Hook file grammar: cmp.<stage>[.<command>][.<platform>[+<binary>]].<ext>
# ============================================================================

HOOK_MARKER = 'cmp'
HOOK_DELIMITER = '.'
HOOK_BINARY_SEPARATOR = '+'
HOOK_STAGES = ('pre', 'post')

# Accepted names for the running platform, keyed by sys.platform
PLATFORM_ALIASES = {
    'win32': ('win32', 'windows'),
    'darwin': ('darwin', 'macos'),
    'linux': ('linux',),
}


def env_key(prefix: str, key: str) -> str:
    """
    Build a derived environment key for the active prefix.

    Examples:
        >>> env_key('CMP_', KEY_STORE_DIR)
        'CMP_STORE_DIR'
    """
    return f"{prefix}{key}"
