from __future__ import annotations

import json
import os
from typing import Any, Mapping

from stagekit import PipelineOutcome, StageResult, utc_now_iso8601


def _decode(data: bytes | None) -> str | None:
    if data is None:
        return None
    return data.decode("utf-8", errors="replace")


def result_to_dict(result: StageResult) -> dict[str, Any]:
    return {
        "name": result.stage.name,
        "command": list(result.stage.command),
        "required": result.stage.required,
        "exit_status": result.exit_status,
        "succeeded": result.succeeded,
        "launch_error": result.launch_error,
        "timed_out": result.timed_out,
        "started_at": result.started_at,
        "duration_s": round(result.duration_s, 3),
        "stdout": _decode(result.stdout),
        "stderr": _decode(result.stderr),
    }


def build_report(
    outcome: PipelineOutcome,
    *,
    run_id: str,
    mode: str,
    exit_code: int,
    config_meta: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "run_id": run_id,
        "created_at": utc_now_iso8601(),
        "mode": mode,
        "exit_code": exit_code,
        "success": outcome.success,
        "stages": [result_to_dict(result) for result in outcome.results],
        "skipped": list(outcome.skipped),
    }
    if config_meta:
        payload["config"] = {
            "mode": config_meta.get("mode"),
            "paths": list(config_meta.get("paths") or []),
        }
    return payload


def write_report(
    path: str,
    outcome: PipelineOutcome,
    *,
    run_id: str,
    mode: str,
    exit_code: int,
    config_meta: Mapping[str, Any] | None = None,
) -> None:
    payload = build_report(
        outcome, run_id=run_id, mode=mode, exit_code=exit_code, config_meta=config_meta
    )
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as file:
        json.dump(payload, file, ensure_ascii=False, indent=2)
        file.write("\n")
