#!/usr/bin/env python3
"""
compose-cat CLI entry point.

Wrapper options must come before the compose arguments. The first token that
is not a wrapper option (or everything after `--`) is passed through to
compose verbatim:

    compose-cat --profile dev up -d --build
    compose-cat cmp-clean --cmp-hook seed
    compose-cat -p demo -- --profile extra config
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .cli_utils import configure_logging, get_cli_version
from .compose_bin import ComposeBinaryNotFoundError
from .config_constants import DEFAULT_DOTENV_PREFIX, DEFAULT_PREFIX
from .engine import COMPOSITE_COMMANDS, PASSTHROUGH, get_command, run
from .settings import WrapperSettings


logger = logging.getLogger(__name__)

# Wrapper option strings -> whether they take a value
WRAPPER_OPTIONS = {
    "--cmp-hook": True,
    "--cmp-bin": True,
    "--cmp-prefix": True,
    "--cmp-dotenv-prefix": True,
    "-p": True,
    "--project-name": True,
    "--profile": True,
    "--cmp-no-profile-files": False,
    "--cmp-log-level": True,
    "--cmp-dry-run": False,
    "-h": False,
    "--help": False,
    "--version": False,
}


def split_arguments(argv: Sequence[str]) -> tuple[Optional[str], list[str], list[str]]:
    """
    Split argv into (command, wrapper options, compose passthrough args).

    Examples:
        >>> split_arguments(['--profile', 'dev', 'up', '-d'])
        (None, ['--profile', 'dev'], ['up', '-d'])
        >>> split_arguments(['cmp-clean', '-p', 'demo'])
        ('cmp-clean', ['-p', 'demo'], [])
    """
    command: Optional[str] = None
    wrapper: list[str] = []
    idx = 0

    while idx < len(argv):
        token = argv[idx]

        if token == "--":
            return command, wrapper, list(argv[idx + 1:])

        name, has_value, _ = token.partition("=")
        if token.startswith("-") and name in WRAPPER_OPTIONS:
            wrapper.append(token)
            if WRAPPER_OPTIONS[name] and not has_value and idx + 1 < len(argv):
                wrapper.append(argv[idx + 1])
                idx += 1
            idx += 1
            continue

        # -pNAME
        if token.startswith("-p") and not token.startswith("--") and len(token) > 2:
            wrapper.append(token)
            idx += 1
            continue

        if command is None and token in COMPOSITE_COMMANDS:
            command = token
            idx += 1
            continue

        return command, wrapper, list(argv[idx:])

    return command, wrapper, []


def build_parser(command: Optional[str] = None) -> argparse.ArgumentParser:
    spec = get_command(command)
    prog = "compose-cat" if spec is PASSTHROUGH else f"compose-cat {spec.name}"

    commands = "\n".join(f"  {name:<20} {c.description}" for name, c in COMPOSITE_COMMANDS.items())
    parser = argparse.ArgumentParser(
        prog=prog,
        usage="%(prog)s [options] [compose args...]",
        description=(
            "ComposeCat: pass-through wrapper for Docker/Podman Compose with env and helpers"
            if spec is PASSTHROUGH else spec.description
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog=f'''
Commands:
{commands}

Examples:
  # Pass through to compose with .env, .env.local, .env.dev, .env.dev.local
  %(prog)s --profile dev up -d

  # Try podman first
  %(prog)s --cmp-bin "podman compose" --cmp-bin "docker compose" ps

  # Tear down, remove volumes and the store directory, run cmp.*.seed.* hooks
  compose-cat cmp-clean --cmp-hook seed
        ''',
    )

    parser.add_argument(
        "--cmp-hook",
        dest="hooks",
        action="append",
        default=[],
        metavar="NAME",
        help="Activate scoped hooks cmp.<stage>.NAME.* (repeatable)",
    )

    parser.add_argument(
        "--cmp-bin",
        dest="compose_bins",
        action="append",
        default=[],
        metavar="CANDIDATE",
        help="Compose binary candidate, tried in order (repeatable)",
    )

    parser.add_argument(
        "--cmp-prefix",
        dest="prefix",
        default=None,
        metavar="PREFIX",
        help=f"Environment variable prefix (default: {DEFAULT_PREFIX})",
    )

    parser.add_argument(
        "--cmp-dotenv-prefix",
        dest="dotenv_prefix",
        default=None,
        metavar="PREFIX",
        help=f"Dotenv file prefix to detect (default: {DEFAULT_DOTENV_PREFIX})",
    )

    parser.add_argument(
        "-p", "--project-name",
        dest="project_name",
        default=None,
        metavar="NAME",
        help=f"Compose project name (overrides {DEFAULT_PREFIX}PROJECT_NAME)",
    )

    parser.add_argument(
        "--profile",
        dest="profiles",
        action="append",
        default=[],
        metavar="PROFILE",
        help="Profiles to use (comma-separated or repeat the flag)",
    )

    parser.add_argument(
        "--cmp-no-profile-files",
        dest="profile_files",
        action="store_false",
        help="Do not auto-include <dotenv-prefix>.<profile>[.local] files",
    )

    parser.add_argument(
        "--cmp-log-level",
        dest="log_level",
        default=None,
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO or $COMPOSE_CAT_LOG_LEVEL)",
    )

    parser.add_argument(
        "--cmp-dry-run",
        dest="dry_run",
        action="store_true",
        help="Log hook and compose commands without executing them",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_cli_version()}",
    )

    return parser


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments for compose-cat.

    Returns a namespace with the wrapper options plus:
    - command: composite command name or None for pass-through
    - compose_args: arguments forwarded to compose
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    command, wrapper_args, compose_args = split_arguments(argv)

    args = build_parser(command).parse_args(wrapper_args)
    args.command = command
    args.compose_args = compose_args
    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)

    settings = WrapperSettings.resolve(
        cwd=Path.cwd(),
        prefix=args.prefix,
        dotenv_prefix=args.dotenv_prefix,
        compose_bins=args.compose_bins,
        hooks=args.hooks,
        profiles=args.profiles,
        project_name=args.project_name,
        profile_files=args.profile_files,
        dry_run=args.dry_run,
        log_level=args.log_level,
        compose_args=args.compose_args,
    )
    configure_logging(settings.log_level)
    logger.info(f"compose-cat: cwd={settings.cwd}, version={get_cli_version()}")

    try:
        return run(settings, get_command(args.command))
    except ComposeBinaryNotFoundError as e:
        print(f"compose-cat: {e}", file=sys.stderr, flush=True)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Execution failed: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
