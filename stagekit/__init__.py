"""Sequential verification-stage kernel (stage model, registry, process runner).

This package is intentionally independent of `project_check.*`. Stage catalogs,
configuration discovery and report formats live in the consuming application.
"""

from stagekit.engine import (
    ALLOWED_EXIT_MODES,
    DefaultStageRecorder,
    ExitMode,
    NullStageRecorder,
    ProcessResult,
    StageRecorder,
    StageRunner,
    exit_code_for,
    launch,
    utc_now_iso8601,
)
from stagekit.stage_registry import StageRegistry
from stagekit.stage_types import (
    LAUNCH_FAILURE_STATUS,
    TIMEOUT_STATUS,
    PipelineOutcome,
    Stage,
    StageResult,
)

__all__ = [
    "ALLOWED_EXIT_MODES",
    "DefaultStageRecorder",
    "ExitMode",
    "LAUNCH_FAILURE_STATUS",
    "NullStageRecorder",
    "PipelineOutcome",
    "ProcessResult",
    "Stage",
    "StageRecorder",
    "StageRegistry",
    "StageResult",
    "StageRunner",
    "TIMEOUT_STATUS",
    "exit_code_for",
    "launch",
    "utc_now_iso8601",
]
