#!/usr/bin/env python3
"""
End-to-end compose-cat runs against a fake compose script and shell hooks.
"""

import os
from pathlib import Path
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from compose_cat import cli  # noqa: E402

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell scripts")

FAKE_COMPOSE = """#!/bin/sh
[ "$1" = "version" ] && exit 0
echo "compose $*" >> "$LOG"
for arg in "$@"; do
    [ "$arg" = "down" ] && exit "${DOWN_STATUS:-0}"
done
exit 0
"""

HOOK = """#!/bin/sh
echo "hook $CMP_HOOK_EVENT[$CMP_HOOK_COMMAND] SOURCE=$SOURCE BIN=$CMP_DETECTED_COMPOSE_BIN" >> "$LOG"
"""


def _executable(path: Path, text: str) -> Path:
    path.write_text(text)
    path.chmod(0o755)
    return path


@pytest.fixture
def project(tmp_path, monkeypatch):
    work = tmp_path / "work"
    work.mkdir()
    log = tmp_path / "calls.log"
    fake = _executable(tmp_path / "fake-compose", FAKE_COMPOSE)

    (work / ".env").write_text("SOURCE=A\n")
    (work / ".env.local").write_text("SOURCE=B\n")
    (work / ".env.dev").write_text("SOURCE=C\n")
    _executable(work / "cmp.pre.sh", HOOK)
    _executable(work / "cmp.post.sh", HOOK)
    _executable(work / "cmp.post.seed.sh", HOOK)

    with patch.dict(os.environ, {"LOG": str(log)}), patch.object(cli, "configure_logging"):
        monkeypatch.chdir(work)
        yield work.resolve(), fake, log


def _lines(log: Path) -> list[str]:
    return log.read_text().splitlines()


def test_passthrough_run(project):
    work, fake, log = project

    status = cli.main(["--cmp-bin", "no-such-compose-xyz", "--cmp-bin", str(fake), "--profile", "dev", "ps", "-a"])

    assert status == 0
    assert _lines(log) == [
        f"hook pre[] SOURCE=C BIN={fake}",
        f"compose --profile dev --env-file {work}/.env --env-file {work}/.env.local "
        f"--env-file {work}/.env.dev ps -a",
        f"hook post[] SOURCE=C BIN={fake}",
    ]
    assert (work / "container-data" / "inject").is_dir()
    assert os.environ["CMP_PROFILES"] == "dev"


def test_clean_removes_store_and_runs_scoped_hooks(project):
    work, fake, log = project
    store = work / "container-data" / "store"
    store.mkdir(parents=True)
    (store / "data.bin").write_text("x")

    status = cli.main(["cmp-clean", "--cmp-bin", str(fake), "--cmp-hook", "seed", "-p", "demo"])

    assert status == 0
    assert _lines(log) == [
        f"hook pre[] SOURCE=B BIN={fake}",
        f"compose -p demo --env-file {work}/.env --env-file {work}/.env.local rm -fsv",
        f"compose -p demo --env-file {work}/.env --env-file {work}/.env.local down --volumes",
        f"hook post[seed] SOURCE=B BIN={fake}",
        f"hook post[] SOURCE=B BIN={fake}",
    ]
    assert not store.exists()
    assert "CMP_PROFILES" not in os.environ


def test_clean_with_images_failure(project):
    work, fake, log = project
    os.environ["DOWN_STATUS"] = "2"

    status = cli.main(["cmp-clean-i-local", "--cmp-bin", str(fake), "--cmp-hook", "seed"])

    assert status == 2
    assert _lines(log)[-2:] == [
        f"compose --env-file {work}/.env --env-file {work}/.env.local down --rmi local --volumes",
        f"hook post[] SOURCE=B BIN={fake}",
    ]
    assert (work / "container-data" / "store").is_dir()


def test_no_binary_runs_nothing(project, capsys):
    work, fake, log = project

    status = cli.main(["--cmp-bin", "no-such-compose-xyz", "up"])

    assert status == 1
    assert not log.exists()
    assert "Tried: no-such-compose-xyz" in capsys.readouterr().err
