"""Tests for running external commands."""

from __future__ import annotations

import subprocess
import typing as typ
from pathlib import Path

import pytest

from pageforge.commands import build_argv, run_command
from pageforge.errors import TaskOptionError

if typ.TYPE_CHECKING:
    from pytest_mock import MockerFixture


def test_build_argv_splits_args_and_appends_list() -> None:
    """String args are shell-split and list args pass through."""
    assert build_argv("git", "log -1 --format='%H %s'", ["--", "a b"]) == [
        "git",
        "log",
        "-1",
        "--format=%H %s",
        "--",
        "a b",
    ]


def test_build_argv_requires_a_command() -> None:
    """An empty command is rejected."""
    with pytest.raises(TaskOptionError, match="exec requires command"):
        build_argv("  ")


def test_run_command_captures_output(mocker: MockerFixture, tmp_path: Path) -> None:
    """The command runs without a shell in the given directory."""
    run = mocker.patch(
        "pageforge.commands.subprocess.run",
        return_value=subprocess.CompletedProcess(["git", "status"], 0, "clean\n", ""),
    )

    result = run_command(["git", "status"], cwd=tmp_path, timeout=5)

    assert result.success
    assert result.message == "exec ok: git status"
    run.assert_called_once_with(
        ["git", "status"],
        cwd=tmp_path,
        capture_output=True,
        text=True,
        timeout=5,
        check=False,
    )


def test_failed_command_reports_stderr(mocker: MockerFixture) -> None:
    """Non-zero exits include the tail of stderr in the message."""
    mocker.patch(
        "pageforge.commands.subprocess.run",
        return_value=subprocess.CompletedProcess(["make"], 2, "", "no rule\n"),
    )

    result = run_command(["make"])

    assert not result.success
    assert result.message == "exec failed with exit code 2: make: no rule"


def test_timeout_is_reported(mocker: MockerFixture) -> None:
    """A command that outlives its timeout is marked as timed out."""
    mocker.patch(
        "pageforge.commands.subprocess.run",
        side_effect=subprocess.TimeoutExpired(["sleep", "9"], 1.5),
    )

    result = run_command(["sleep", "9"], timeout=1.5)

    assert result.timed_out
    assert not result.success
    assert result.message == "exec timed out after 1.5s"
