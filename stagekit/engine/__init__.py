from stagekit.engine.process import ProcessResult, launch, normalize_returncode
from stagekit.engine.runner import (
    ALLOWED_EXIT_MODES,
    DefaultStageRecorder,
    ExitMode,
    NullStageRecorder,
    StageRecorder,
    StageRunner,
    exit_code_for,
    utc_now_iso8601,
)

__all__ = [
    "ALLOWED_EXIT_MODES",
    "DefaultStageRecorder",
    "ExitMode",
    "NullStageRecorder",
    "ProcessResult",
    "StageRecorder",
    "StageRunner",
    "exit_code_for",
    "launch",
    "normalize_returncode",
    "utc_now_iso8601",
]
