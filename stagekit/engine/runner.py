"""Sequential stage runner.

This module is intentionally app-agnostic and must not import `project_check.*`.
"""

from __future__ import annotations

import logging
import sys
import time
from datetime import datetime, timezone
from typing import IO, Any, Iterable, Literal, Protocol, TypeAlias

from stagekit.engine.process import ProcessResult, launch
from stagekit.stage_types import PipelineOutcome, Stage, StageResult

ExitMode: TypeAlias = Literal["parity", "aggregate"]
ALLOWED_EXIT_MODES: tuple[str, ...] = ("parity", "aggregate")


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def exit_code_for(outcome: PipelineOutcome, mode: ExitMode = "parity") -> int:
    """
    Process exit code for a finished run.

    parity: status of the last executed stage, whatever happened before it.
    aggregate: 0 when every required stage passed, else the first failing required stage's status.
    """

    if mode == "parity":
        return outcome.last_exit_status
    if mode == "aggregate":
        failure = outcome.first_required_failure()
        return 0 if failure is None else failure.exit_status
    raise ValueError(f"Unknown exit mode: {mode!r} (expected one of: {', '.join(ALLOWED_EXIT_MODES)})")


class StageRecorder(Protocol):
    def on_stage_start(self, stage: Stage, index: int, total: int) -> None:
        ...

    def on_stage_end(self, result: StageResult) -> None:
        ...

    def on_launch_failure(self, result: StageResult) -> None:
        ...

    def on_run_end(self, outcome: PipelineOutcome) -> None:
        ...


class DefaultStageRecorder:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def on_stage_start(self, stage: Stage, index: int, total: int) -> None:
        self.logger.info(
            "Stage %d/%d: %s (command=%s, required=%s)",
            index + 1,
            total,
            stage.name,
            stage.display_command,
            str(stage.required).lower(),
        )
        self._flush()

    def on_stage_end(self, result: StageResult) -> None:
        if result.timed_out:
            self.logger.warning(
                "Stage %s timed out after %.2fs and was stopped", result.stage.name, result.duration_s
            )
        level = logging.INFO if result.succeeded else logging.WARNING
        self.logger.log(
            level,
            "Stage %s finished (exit_status=%d, duration_s=%.2f)",
            result.stage.name,
            result.exit_status,
            result.duration_s,
        )
        self._flush()

    def on_launch_failure(self, result: StageResult) -> None:
        self.logger.error(
            "Stage %s failed to launch (exit_status=%d): %s",
            result.stage.name,
            result.exit_status,
            result.launch_error,
        )
        self._flush()

    def on_run_end(self, outcome: PipelineOutcome) -> None:
        tokens = [f"{result.stage.name}={_status_label(result)}" for result in outcome.results]
        tokens.extend(f"{name}=skipped" for name in outcome.skipped)
        self.logger.info(
            "Run complete (%s; success=%s)",
            ", ".join(tokens) or "no stages",
            str(outcome.success).lower(),
        )
        self._flush()

    def _flush(self) -> None:
        for handler in self.logger.handlers:
            handler.flush()


class NullStageRecorder:
    def on_stage_start(self, stage: Stage, index: int, total: int) -> None:
        return

    def on_stage_end(self, result: StageResult) -> None:
        return

    def on_launch_failure(self, result: StageResult) -> None:
        return

    def on_run_end(self, outcome: PipelineOutcome) -> None:
        return


def _status_label(result: StageResult) -> str:
    if result.launch_failed:
        return f"launch_failure({result.exit_status})"
    if result.timed_out:
        return f"timeout({result.exit_status})"
    if result.succeeded:
        return "ok"
    return f"failed({result.exit_status})"


def _write_bytes(stream: IO[Any], data: bytes) -> None:
    buffer = getattr(stream, "buffer", None)
    if buffer is not None:
        stream.flush()
        buffer.write(data)
        buffer.flush()
    else:
        stream.write(data.decode("utf-8", errors="replace"))
    stream.flush()


class StageRunner:
    def __init__(
        self,
        *,
        recorder: StageRecorder | None = None,
        stop_on_failure: bool = False,
        capture_output: bool = False,
        timeout_s: float | None = None,
        kill_grace_s: float = 5.0,
        stdout: IO[Any] | None = None,
        stderr: IO[Any] | None = None,
    ):
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0 (got {timeout_s!r})")
        if kill_grace_s < 0:
            raise ValueError(f"kill_grace_s must be >= 0 (got {kill_grace_s!r})")

        self._recorder = recorder or NullStageRecorder()
        self._validate_recorder(self._recorder)
        self.stop_on_failure = stop_on_failure
        self.capture_output = capture_output
        self.timeout_s = timeout_s
        self.kill_grace_s = kill_grace_s
        self._stdout = stdout
        self._stderr = stderr

    @property
    def stdout(self) -> IO[Any]:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def stderr(self) -> IO[Any]:
        return self._stderr if self._stderr is not None else sys.stderr

    def run(self, stages: Iterable[Stage]) -> PipelineOutcome:
        sequence = tuple(stages)
        for stage in sequence:
            if not isinstance(stage, Stage):
                raise TypeError(f"Expected Stage (got {type(stage).__name__})")

        results: list[StageResult] = []
        skipped: tuple[str, ...] = ()
        total = len(sequence)

        for index, stage in enumerate(sequence):
            result = self.run_stage(stage, index=index, total=total)
            results.append(result)

            if self.stop_on_failure and stage.required and not result.succeeded:
                skipped = tuple(remaining.name for remaining in sequence[index + 1 :])
                break

        outcome = PipelineOutcome(results=tuple(results), skipped=skipped)
        self._recorder.on_run_end(outcome)
        return outcome

    def run_stage(self, stage: Stage, *, index: int = 0, total: int = 1) -> StageResult:
        # Everything emitted so far must be visible before the child writes anything.
        self._flush_streams()
        self._recorder.on_stage_start(stage, index, total)

        started_at = utc_now_iso8601()
        started = time.monotonic()
        process: ProcessResult = launch(
            stage.command,
            capture_output=self.capture_output,
            timeout_s=self.timeout_s,
            kill_grace_s=self.kill_grace_s,
        )
        duration_s = time.monotonic() - started

        if process.stdout:
            _write_bytes(self.stdout, process.stdout)
        if process.stderr:
            _write_bytes(self.stderr, process.stderr)
        self._flush_streams()

        result = StageResult(
            stage=stage,
            index=index,
            exit_status=process.exit_status,
            stdout=process.stdout,
            stderr=process.stderr,
            launch_error=process.launch_error,
            timed_out=process.timed_out,
            started_at=started_at,
            duration_s=duration_s,
        )
        if result.launch_failed:
            self._recorder.on_launch_failure(result)
        self._recorder.on_stage_end(result)
        return result

    def _flush_streams(self) -> None:
        for stream in (self.stdout, self.stderr):
            flush = getattr(stream, "flush", None)
            if callable(flush):
                flush()

    def _validate_recorder(self, recorder: StageRecorder) -> None:
        required = ("on_stage_start", "on_stage_end", "on_launch_failure", "on_run_end")
        for name in required:
            method = getattr(recorder, name, None)
            if method is None or not callable(method):
                raise TypeError(f"Stage recorder missing required method: {name}")
