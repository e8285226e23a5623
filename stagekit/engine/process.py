"""Single-subprocess launcher used by the stage runner.

Children inherit the caller's working directory and environment verbatim. Launch
errors are reported in the returned `ProcessResult`, never raised.
"""

from __future__ import annotations

import os
import signal
import subprocess
from dataclasses import dataclass
from typing import Sequence

from stagekit.stage_types import LAUNCH_FAILURE_STATUS, TIMEOUT_STATUS


@dataclass(frozen=True)
class ProcessResult:
    exit_status: int
    stdout: bytes | None = None
    stderr: bytes | None = None
    launch_error: str | None = None
    timed_out: bool = False


def normalize_returncode(returncode: int) -> int:
    """Map a Popen return code to the status a shell would report."""

    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def _signal_group(proc: subprocess.Popen, sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except (ProcessLookupError, PermissionError):
        # Every member of the group has already exited.
        return


def _terminate(proc: subprocess.Popen, *, group: bool) -> None:
    if group:
        _signal_group(proc, signal.SIGTERM)
    else:
        proc.terminate()


def _kill(proc: subprocess.Popen, *, group: bool) -> None:
    if group:
        _signal_group(proc, signal.SIGKILL)
    else:
        proc.kill()


def _stop(
    proc: subprocess.Popen, *, capture_output: bool, kill_grace_s: float, group: bool
) -> tuple[bytes | None, bytes | None]:
    _terminate(proc, group=group)
    output: tuple[bytes | None, bytes | None] = (None, None)
    finished = True
    try:
        if capture_output:
            output = proc.communicate(timeout=kill_grace_s)
        else:
            proc.wait(timeout=kill_grace_s)
    except subprocess.TimeoutExpired:
        finished = False

    # Grandchildren (rustc, test binaries) can outlive the direct child and keep
    # the pipes open or write into the next stage's output.
    if group or not finished:
        _kill(proc, group=group)
    if not finished:
        if capture_output:
            output = proc.communicate()
        else:
            proc.wait()
    return output


def launch(
    command: Sequence[str],
    *,
    capture_output: bool = False,
    timeout_s: float | None = None,
    kill_grace_s: float = 5.0,
) -> ProcessResult:
    if timeout_s is not None and timeout_s <= 0:
        raise ValueError(f"timeout_s must be > 0 (got {timeout_s!r})")
    if kill_grace_s < 0:
        raise ValueError(f"kill_grace_s must be >= 0 (got {kill_grace_s!r})")

    pipe = subprocess.PIPE if capture_output else None
    # A timed stage gets its own process group so the timeout reaches its whole tree.
    group = timeout_s is not None and os.name == "posix"
    try:
        proc = subprocess.Popen(
            list(command), stdout=pipe, stderr=pipe, start_new_session=group
        )
    except FileNotFoundError as exc:
        return ProcessResult(
            exit_status=LAUNCH_FAILURE_STATUS,
            launch_error=f"executable not found: {command[0]} ({exc.strerror or exc})",
        )
    except PermissionError as exc:
        return ProcessResult(
            exit_status=LAUNCH_FAILURE_STATUS,
            launch_error=f"permission denied: {command[0]} ({exc.strerror or exc})",
        )
    except OSError as exc:
        return ProcessResult(
            exit_status=LAUNCH_FAILURE_STATUS,
            launch_error=f"failed to start {command[0]}: {exc}",
        )

    try:
        if capture_output:
            stdout, stderr = proc.communicate(timeout=timeout_s)
        else:
            proc.wait(timeout=timeout_s)
            stdout, stderr = None, None
    except subprocess.TimeoutExpired:
        stdout, stderr = _stop(
            proc, capture_output=capture_output, kill_grace_s=kill_grace_s, group=group
        )
        return ProcessResult(
            exit_status=TIMEOUT_STATUS,
            stdout=stdout,
            stderr=stderr,
            timed_out=True,
        )
    except BaseException:
        # KeyboardInterrupt and friends: never leave the child running.
        _kill(proc, group=group)
        proc.wait()
        raise

    return ProcessResult(
        exit_status=normalize_returncode(proc.returncode),
        stdout=stdout,
        stderr=stderr,
    )
