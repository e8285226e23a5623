from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

# Shell conventions: "command not found" and GNU timeout(1).
LAUNCH_FAILURE_STATUS = 127
TIMEOUT_STATUS = 124


@dataclass(frozen=True)
class Stage:
    name: str
    command: tuple[str, ...]
    required: bool = True
    doc: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("Stage.name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())

        if isinstance(self.command, (str, bytes)) or not isinstance(self.command, Sequence):
            raise TypeError(
                f"Stage.command must be a sequence of strings (stage={self.name}, "
                f"type={type(self.command).__name__})"
            )
        command = tuple(self.command)
        if not command:
            raise ValueError(f"Stage.command cannot be empty (stage={self.name})")
        for part in command:
            if not isinstance(part, str):
                raise TypeError(
                    f"Stage.command items must be strings (stage={self.name}, got {part!r})"
                )
        if not command[0].strip():
            raise ValueError(f"Stage.command executable cannot be blank (stage={self.name})")
        object.__setattr__(self, "command", command)

        if not isinstance(self.required, bool):
            raise TypeError(f"Stage.required must be a bool (stage={self.name})")
        if self.doc is not None and (not isinstance(self.doc, str) or not self.doc.strip()):
            raise TypeError("Stage.doc must be a non-empty string or None")

    @property
    def display_command(self) -> str:
        return " ".join(self.command)


@dataclass(frozen=True)
class StageResult:
    stage: Stage
    index: int
    exit_status: int
    stdout: bytes | None = None
    stderr: bytes | None = None
    launch_error: str | None = None
    timed_out: bool = False
    started_at: str | None = None
    duration_s: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0

    @property
    def launch_failed(self) -> bool:
        return self.launch_error is not None


@dataclass(frozen=True)
class PipelineOutcome:
    results: tuple[StageResult, ...] = ()
    skipped: tuple[str, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return all(result.succeeded for result in self.results if result.stage.required)

    @property
    def last_exit_status(self) -> int:
        if not self.results:
            return 0
        return self.results[-1].exit_status

    @property
    def failed(self) -> tuple[StageResult, ...]:
        return tuple(result for result in self.results if not result.succeeded)

    def first_required_failure(self) -> StageResult | None:
        for result in self.results:
            if result.stage.required and not result.succeeded:
                return result
        return None
