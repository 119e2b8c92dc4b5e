"""
compose-cat compose binary detection tests.
"""

from pathlib import Path
import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from compose_cat.compose_bin import (  # noqa: E402
    ComposeBinaryNotFoundError,
    detect_compose_bin,
    parse_csv,
    probe_compose_bin,
    resolve_compose_bin,
    select_candidates,
)
from compose_cat.config_constants import DEFAULT_COMPOSE_BINS  # noqa: E402


def _probe_from(outcomes: dict):
    calls = []

    def probe(candidate):
        calls.append(candidate)
        return outcomes.get(candidate, False)

    probe.calls = calls
    return probe


class TestSelectCandidates:
    def test_user_list_replaces_everything(self):
        assert select_candidates(["a"], ["b"], ["c"]) == ["a"]

    def test_env_list_used_without_user_list(self):
        assert select_candidates([], ["b", "c"], ["d"]) == ["b", "c"]

    def test_defaults_used_last(self):
        assert select_candidates([], []) == list(DEFAULT_COMPOSE_BINS)


class TestDetectComposeBin:
    def test_first_success_wins(self):
        probe = _probe_from({"second": True, "third": True})

        assert detect_compose_bin(["first", "second", "third"], probe=probe) == "second"
        assert probe.calls == ["first", "second"]

    def test_exhaustion_raises_with_candidates(self):
        probe = _probe_from({})

        with pytest.raises(ComposeBinaryNotFoundError, match=r"Tried: a \| b") as exc_info:
            detect_compose_bin(["a", "b"], probe=probe)

        assert exc_info.value.candidates == ["a", "b"]

    def test_env_declared_list_is_read_with_prefix(self):
        probe = _probe_from({"podman-compose": True})
        env = {"APP_COMPOSE_BIN": "nope, podman-compose"}

        assert resolve_compose_bin([], env, "APP_", probe=probe) == "podman-compose"
        assert probe.calls == ["nope", "podman-compose"]

    def test_user_list_does_not_fall_back(self):
        probe = _probe_from({"docker compose": True})
        env = {"CMP_COMPOSE_BIN": "docker compose"}

        with pytest.raises(ComposeBinaryNotFoundError):
            resolve_compose_bin(["broken"], env, "CMP_", probe=probe)


class TestProbeComposeBin:
    def test_success_on_zero_exit(self):
        with patch("subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
            assert probe_compose_bin("docker compose") is True

        argv = mock_run.call_args.args[0]
        assert argv == ["docker", "compose", "version"]
        assert mock_run.call_args.kwargs["timeout"] == 2.0

    def test_nonzero_exit_fails(self):
        with patch("subprocess.run", return_value=MagicMock(returncode=1)):
            assert probe_compose_bin("docker compose") is False

    def test_timeout_fails(self):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("docker", 2)):
            assert probe_compose_bin("docker compose") is False

    def test_missing_binary_fails(self):
        assert probe_compose_bin("definitely-not-a-real-compose-binary-xyz") is False

    def test_empty_candidate_fails(self):
        with patch("subprocess.run") as mock_run:
            assert probe_compose_bin("") is False
        mock_run.assert_not_called()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell script")
    def test_real_script(self, tmp_path):
        script = tmp_path / "fake-compose"
        script.write_text('#!/bin/sh\n[ "$1" = "version" ] && exit 0\nexit 3\n')
        script.chmod(0o755)

        assert probe_compose_bin(str(script)) is True


def test_parse_csv():
    assert parse_csv(None) == []
    assert parse_csv("a, b ,,c") == ["a", "b", "c"]
