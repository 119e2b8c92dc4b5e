#!/usr/bin/env python3
"""
compose-cat engine.

Pipeline per invocation:
- Phase 1: Merge layered dotenv files into the effective environment
- Phase 2: Detect a usable compose binary
- Phase 3: Ensure inject/store data directories
- Phase 4: Build the compose argument vector
- Phase 5: Run hooks and compose steps

Execution order (each stage gated on the previous one):
    pre global hooks → pre scoped hooks → compose step 1..n
        → post scoped hooks → post global hooks

Failure rules:
1. A failing pre hook stops everything; its status is the result
2. A failing compose step stops remaining steps, the store cleanup and the
   scoped post hooks, but global post hooks still run; the compose status wins
3. A failing scoped post hook stops everything after it (global post hooks too)
4. A process killed by signal N reports 128 + N
5. SIGINT is ignored while a child runs; the child decides how to stop
"""

from __future__ import annotations

import logging
import shutil
import signal
import subprocess
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Mapping, MutableMapping, Optional, Sequence

from .command_builder import build_compose_args, compose_argv, format_command
from .compose_bin import Probe, probe_compose_bin, resolve_compose_bin
from .config_constants import (
    DATA_BASE_DIRNAME,
    INJECT_DIRNAME,
    KEY_BASE_DIR,
    KEY_DATA_BASE_DIR,
    KEY_DETECTED_COMPOSE_BIN,
    KEY_INJECT_DIR,
    KEY_STORE_DIR,
    STORE_DIRNAME,
)
from .dotenv_layers import EffectiveEnvironment, resolve_env_layers
from .hooks import discover_hooks
from .settings import WrapperSettings


logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str], Mapping[str, str], Path], int]


# ============================================================================
# Commands
# ============================================================================


@dataclass(frozen=True)
class CommandSpec:
    """
    A logical command: one compose call per step, each step's extra args
    appended after the common argument vector.
    """

    name: str
    description: str
    steps: tuple[tuple[str, ...], ...] = ((),)
    clean_store: bool = False


PASSTHROUGH = CommandSpec(
    name="compose",
    description="Pass arguments through to the detected compose binary",
)

COMPOSITE_COMMANDS: dict[str, CommandSpec] = {
    spec.name: spec
    for spec in (
        CommandSpec(
            name="cmp-clean",
            description="Remove containers and volumes, then delete the store directory",
            steps=(("rm", "-fsv"), ("down", "--volumes")),
            clean_store=True,
        ),
        CommandSpec(
            name="cmp-clean-i-local",
            description="Like cmp-clean and also removes images for services without a custom tag",
            steps=(("rm", "-fsv"), ("down", "--rmi", "local", "--volumes")),
            clean_store=True,
        ),
        CommandSpec(
            name="cmp-clean-i-all",
            description="Like cmp-clean and also removes all images referenced by the services",
            steps=(("rm", "-fsv"), ("down", "--rmi", "all", "--volumes")),
            clean_store=True,
        ),
    )
}


def get_command(name: Optional[str]) -> CommandSpec:
    if not name or name == PASSTHROUGH.name:
        return PASSTHROUGH
    try:
        return COMPOSITE_COMMANDS[name]
    except KeyError:
        raise ValueError(f"Unknown command: {name}") from None


# ============================================================================
# Process execution
# ============================================================================


def exit_status(returncode: int) -> int:
    """
    Normalize a subprocess return code; signal deaths map to 128 + signum.

    Examples:
        >>> exit_status(-15)
        143
    """
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


@contextmanager
def _interrupts_left_to_child() -> Iterator[None]:
    """Ignore SIGINT in this process while a foreground child runs."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous if previous is not None else signal.default_int_handler)


def run_command(argv: Sequence[str], env: Mapping[str, str], cwd: Path) -> int:
    """
    Run argv with inherited stdio and return its exit status.

    Spawn failures are reported as 127 (not found) or 126 (not executable).
    A terminal interrupt is left to the child, which shares the foreground
    process group; its own exit status is what gets reported.
    """
    logger.info(f"[RUNNING] {format_command(argv)}")
    try:
        proc = subprocess.Popen(list(argv), env=dict(env), cwd=str(cwd))
    except FileNotFoundError as e:
        logger.error(f"Command not found: {argv[0]} ({e})")
        return 127
    except PermissionError as e:
        logger.error(f"Command not executable: {argv[0]} ({e})")
        return 126
    except OSError as e:
        logger.error(f"Failed to start {argv[0]}: {e}")
        return 126

    with _interrupts_left_to_child():
        returncode = proc.wait()

    status = exit_status(returncode)
    if status != 0:
        logger.debug(f"Exit {status}: {format_command(argv)}")
    return status


def dry_run_command(argv: Sequence[str], env: Mapping[str, str], cwd: Path) -> int:
    logger.info(f"[DRY-RUN] {format_command(argv)}")
    return 0


# ============================================================================
# Data directories
# ============================================================================


@dataclass(frozen=True)
class DataDirs:
    base_dir: Path
    data_base_dir: Path
    inject_dir: Path
    store_dir: Path


def ensure_data_dirs(env: EffectiveEnvironment, settings: WrapperSettings) -> DataDirs:
    """
    Resolve and export {prefix}BASE_DIR/DATA_BASE_DIR/INJECT_DIR/STORE_DIR,
    then create the inject and store directories.

    Relative overrides are resolved against the working directory.
    """
    def _resolve(key: str, default: Path) -> Path:
        value = env.get(settings.key(key))
        path = settings.cwd / value if value else default
        env.export(settings.key(key), str(path))
        return path

    base_dir = _resolve(KEY_BASE_DIR, settings.cwd)
    data_base_dir = _resolve(KEY_DATA_BASE_DIR, base_dir / DATA_BASE_DIRNAME)
    inject_dir = _resolve(KEY_INJECT_DIR, data_base_dir / INJECT_DIRNAME)
    store_dir = _resolve(KEY_STORE_DIR, data_base_dir / STORE_DIRNAME)

    for directory in (inject_dir, store_dir):
        directory.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Data directories ready: inject={inject_dir} store={store_dir}")

    return DataDirs(base_dir, data_base_dir, inject_dir, store_dir)


def remove_store_dir(store_dir: Path) -> None:
    """Delete the store directory; failures are logged, never raised."""
    try:
        shutil.rmtree(store_dir)
        logger.info(f"Removed store directory: {store_dir}")
    except FileNotFoundError:
        logger.debug(f"Store directory already absent: {store_dir}")
    except OSError as e:
        logger.error(f"Error removing store dir {store_dir}: {e}")


# ============================================================================
# Plan
# ============================================================================


@dataclass
class InvocationPlan:
    compose_bin: str
    args: list[str]
    env: EffectiveEnvironment
    cwd: Path
    prefix: str
    store_dir: Path
    hooks: tuple[str, ...] = ()
    dry_run: bool = False

    def step_argv(self, extra: Sequence[str] = ()) -> list[str]:
        return compose_argv(self.compose_bin, [*self.args, *extra])


def prepare(
    settings: WrapperSettings,
    process_env: Optional[MutableMapping[str, str]] = None,
    probe: Probe = probe_compose_bin,
) -> InvocationPlan:
    """
    Resolve environment, binary, data directories and arguments.

    Raises:
        ComposeBinaryNotFoundError: if no candidate binary is usable
    """
    layered = resolve_env_layers(settings, process_env=process_env)
    env = layered.env
    if layered.env_files:
        logger.info(f"Env files: {', '.join(str(f) for f in layered.env_files)}")

    compose_bin = resolve_compose_bin(settings.compose_bins, env, settings.prefix, probe=probe)
    env.export(settings.key(KEY_DETECTED_COMPOSE_BIN), compose_bin)
    logger.debug(f"Detected compose binary: {compose_bin}")

    dirs = ensure_data_dirs(env, settings)

    args = build_compose_args(
        settings.project_name,
        layered.env_files,
        env,
        layered.profiles,
        settings.compose_args,
        settings.prefix,
    )

    return InvocationPlan(
        compose_bin=compose_bin,
        args=args,
        env=env,
        cwd=settings.cwd,
        prefix=settings.prefix,
        store_dir=dirs.store_dir,
        hooks=settings.hooks,
        dry_run=settings.dry_run,
    )


# ============================================================================
# Execution
# ============================================================================


def run_hooks(stage: str, command: Optional[str], plan: InvocationPlan, runner: Runner) -> int:
    """
    Run every discovered hook for stage/command in order.

    Returns the first nonzero status, or 0.
    """
    for hook in discover_hooks(stage, plan.cwd, command):
        logger.debug(f"Running {stage} hook: {hook.file.name}")
        status = runner(hook.argv(), plan.env.child_env(hook.context_env(plan.prefix)), plan.cwd)
        if status != 0:
            logger.error(f"{stage} hook failed (exit {status}): {hook.file}")
            return status
    return 0


def execute_plan(plan: InvocationPlan, command: CommandSpec, runner: Optional[Runner] = None) -> int:
    """
    Run hooks and compose steps for a command; return the final exit status.
    """
    if runner is None:
        runner = dry_run_command if plan.dry_run else run_command

    status = run_hooks("pre", None, plan, runner)
    if status != 0:
        return status

    for hook_name in plan.hooks:
        status = run_hooks("pre", hook_name, plan, runner)
        if status != 0:
            return status

    compose_status = 0
    for idx, extra in enumerate(command.steps, 1):
        compose_status = runner(plan.step_argv(extra), plan.env.child_env(), plan.cwd)
        if compose_status != 0:
            logger.error(
                f"{command.name}: compose step {idx}/{len(command.steps)} failed (exit {compose_status})"
            )
            break

    if compose_status == 0:
        if command.clean_store:
            if plan.dry_run:
                logger.info(f"[DRY-RUN] Would remove store directory: {plan.store_dir}")
            else:
                remove_store_dir(plan.store_dir)

        for hook_name in plan.hooks:
            status = run_hooks("post", hook_name, plan, runner)
            if status != 0:
                return status

    # Global post hooks run even after a failed compose step.
    post_status = run_hooks("post", None, plan, runner)
    return compose_status or post_status


def run(
    settings: WrapperSettings,
    command: CommandSpec = PASSTHROUGH,
    runner: Optional[Runner] = None,
    probe: Probe = probe_compose_bin,
    process_env: Optional[MutableMapping[str, str]] = None,
) -> int:
    """
    Prepare and execute one logical command.

    Raises:
        ComposeBinaryNotFoundError: before any hook or compose step runs
    """
    plan = prepare(settings, process_env=process_env, probe=probe)
    return execute_plan(plan, command, runner=runner)
