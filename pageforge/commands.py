"""Run external commands for the pipeline ``exec`` task."""

from __future__ import annotations

import dataclasses as dc
import shlex
import subprocess
import typing as typ

from pageforge.errors import TaskOptionError

if typ.TYPE_CHECKING:
    from pathlib import Path

OUTPUT_TAIL = 400


@dc.dataclass(slots=True)
class CommandResult:
    """Exit status and captured output of one command."""

    argv: list[str]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    timeout_seconds: float | None = None

    @property
    def success(self) -> bool:
        """Return whether the command exited with status 0."""
        return not self.timed_out and self.returncode == 0

    @property
    def message(self) -> str:
        """Return the one-line summary reported by the pipeline."""
        if self.timed_out:
            return f"exec timed out after {self.timeout_seconds:g}s"
        output = (self.stderr.strip() or self.stdout.strip())[-OUTPUT_TAIL:]
        command = shlex.join(self.argv)
        if self.returncode == 0:
            return f"exec ok: {command}"
        detail = f"{command}: {output}" if output else command
        return f"exec failed with exit code {self.returncode}: {detail}"


def build_argv(command: str, args: str | None = None, args_list: typ.Sequence[str] = ()) -> list[str]:
    """Return the argument vector for ``command``.

    ``args`` is split with :func:`shlex.split`; ``args_list`` entries are
    passed through unchanged and appended after it.

    Examples
    --------
    >>> build_argv("git", "log -1 --format='%H %s'")
    ['git', 'log', '-1', '--format=%H %s']
    """
    if not command.strip():
        msg = "exec requires command."
        raise TaskOptionError(msg)
    argv = [command.strip()]
    if args:
        argv.extend(shlex.split(args))
    argv.extend(str(value) for value in args_list)
    return argv


def run_command(
    argv: list[str],
    *,
    cwd: Path | None = None,
    timeout: float = 600,
) -> CommandResult:
    """Run ``argv`` without a shell and capture its output.

    Raises
    ------
    OSError
        If the executable cannot be started.
    """
    try:
        completed = subprocess.run(  # noqa: S603
            argv,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(argv=argv, returncode=None, timed_out=True, timeout_seconds=timeout)
    return CommandResult(
        argv=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        timeout_seconds=timeout,
    )


__all__ = ["CommandResult", "build_argv", "run_command"]
