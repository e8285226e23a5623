from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, replace
from typing import Any, Mapping

from stagekit import ALLOWED_EXIT_MODES, ExitMode, Stage, StageRegistry

from project_check.catalog import REFERENCE_STAGES
from project_check.foundation.logging_utils import ALLOWED_LOG_LEVELS


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts:
      - True/False
      - 0/1 (ints)
      - strings: true/false/1/0/yes/no (case-insensitive, surrounding whitespace ignored)

    Raises:
      ValueError for anything else, with the provided config key path.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"Invalid boolean for {path}: {value!r}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
        raise ValueError(f"Invalid boolean for {path}: {value!r}")

    raise ValueError(f"Invalid boolean for {path}: {value!r}")


def parse_float(value: Any, path: str) -> float:
    if value is None:
        raise ValueError(f"Invalid config value for {path}: None")
    if isinstance(value, bool):
        raise ValueError(f"Invalid config type for {path}: expected float, got bool")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        if not value.strip():
            raise ValueError(f"Invalid config value for {path}: must be a float")
        try:
            return float(value.strip())
        except Exception as exc:  # noqa: BLE001
            raise ValueError(f"Invalid config value for {path}: must be a float") from exc
    raise ValueError(f"Invalid config type for {path}: expected float")


def parse_command(value: Any, path: str) -> tuple[str, ...]:
    """Accept a list of strings, or a shell-style string split with shlex."""

    if isinstance(value, str):
        try:
            parts = shlex.split(value)
        except ValueError as exc:
            raise ValueError(f"Invalid command for {path}: {exc}") from exc
    elif isinstance(value, (list, tuple)):
        parts = []
        for idx, item in enumerate(value):
            if isinstance(item, bool) or not isinstance(item, (str, int, float)):
                raise ValueError(f"Invalid config type for {path}[{idx}]: expected string")
            parts.append(str(item))
    else:
        raise ValueError(f"Invalid config type for {path}: expected list of strings or string")

    if not parts or not parts[0].strip():
        raise ValueError(f"Invalid config value for {path}: command cannot be empty")
    return tuple(parts)


@dataclass(frozen=True)
class CheckConfig:
    mode: ExitMode
    stop_on_failure: bool
    capture_output: bool
    timeout_s: float | None
    kill_grace_s: float

    log_level: str
    log_dir: str | None
    report_path: str | None

    stages: tuple[Stage, ...]
    stages_source: str

    @property
    def registry(self) -> StageRegistry:
        return StageRegistry.from_stages(self.stages)

    def with_overrides(self, **overrides: Any) -> "CheckConfig":
        """Apply CLI overrides; None means "not given" and keeps the configured value."""

        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        updated = replace(self, **changes)
        if updated.mode not in ALLOWED_EXIT_MODES:
            raise ValueError(f"Unknown run.mode: {updated.mode}")
        if updated.timeout_s is not None and updated.timeout_s <= 0:
            raise ValueError("Invalid config value for run.timeout_s: must be > 0")
        return updated

    @staticmethod
    def from_dict(
        cfg: Mapping[str, Any], *, base_dir: str | None = None
    ) -> tuple["CheckConfig", list[str]]:
        """
        Parse and validate configuration, returning (CheckConfig, warnings).

        Raises:
            ValueError: if keys are invalid, or unknown keys are present with strict=true.
        """

        if not isinstance(cfg, Mapping):
            raise ValueError("Config must be a mapping")

        warnings: list[str] = []
        resolve_dir = os.path.abspath(base_dir or os.getcwd())

        strict_unknown_keys = False
        if "strict" in cfg:
            strict_unknown_keys = parse_bool(cfg.get("strict"), "strict")

        schema: Mapping[str, Any] = {
            "strict": None,
            "run": {
                "mode": None,
                "stop_on_failure": None,
                "capture_output": None,
                "timeout_s": None,
                "kill_grace_s": None,
            },
            "logging": {"level": None, "log_dir": None},
            "report": {"path": None},
            "stages": None,
        }
        stage_keys = ("name", "command", "required", "doc")

        def collect_unknown_keys(mapping: Any, schema: Mapping[str, Any], *, prefix: str) -> list[str]:
            if not isinstance(mapping, Mapping):
                return []
            unknown: list[str] = []
            for key, value in mapping.items():
                if not isinstance(key, str):
                    continue
                if key not in schema:
                    unknown.append(f"{prefix}.{key}" if prefix else key)
                    continue
                subschema = schema.get(key)
                if isinstance(subschema, Mapping):
                    unknown.extend(
                        collect_unknown_keys(
                            value, subschema, prefix=f"{prefix}.{key}" if prefix else key
                        )
                    )
            return unknown

        unknown_keys = collect_unknown_keys(cfg, schema, prefix="")
        raw_stages = cfg.get("stages")
        if isinstance(raw_stages, (list, tuple)):
            for idx, entry in enumerate(raw_stages):
                if isinstance(entry, Mapping):
                    unknown_keys.extend(
                        f"stages[{idx}].{key}"
                        for key in entry
                        if isinstance(key, str) and key not in stage_keys
                    )

        if unknown_keys:
            unknown_keys = sorted(set(unknown_keys))
            if strict_unknown_keys:
                raise ValueError("Unknown config keys: " + ", ".join(unknown_keys))
            warnings.extend(f"Unknown config key: {key}" for key in unknown_keys)

        def get_mapping(path: str) -> Mapping[str, Any]:
            value = cfg.get(path)
            if value is None:
                return {}
            if not isinstance(value, Mapping):
                raise ValueError(f"Invalid config type for {path}: expected mapping")
            return value

        def optional_str(section: Mapping[str, Any], key: str, path: str) -> str | None:
            value = section.get(key)
            if value is None:
                return None
            if not isinstance(value, str):
                raise ValueError(f"Invalid config type for {path}: expected string")
            return value.strip() or None

        def normalize_optional_path(value: str | None) -> str | None:
            if value is None:
                return None
            expanded = os.path.expandvars(os.path.expanduser(value))
            if not os.path.isabs(expanded):
                expanded = os.path.join(resolve_dir, expanded)
            return os.path.abspath(expanded)

        run_cfg = get_mapping("run")
        raw_mode: Any = run_cfg.get("mode")
        if raw_mode is None:
            raw_mode = "parity"
        if not isinstance(raw_mode, str):
            raise ValueError(f"Unknown run.mode: {raw_mode!r}")
        mode = raw_mode.strip().lower()
        if mode not in ALLOWED_EXIT_MODES:
            raise ValueError(f"Unknown run.mode: {raw_mode}")

        stop_on_failure = False
        if "stop_on_failure" in run_cfg:
            stop_on_failure = parse_bool(run_cfg["stop_on_failure"], "run.stop_on_failure")
        capture_output = False
        if "capture_output" in run_cfg:
            capture_output = parse_bool(run_cfg["capture_output"], "run.capture_output")

        timeout_s: float | None = None
        if run_cfg.get("timeout_s") is not None:
            timeout_s = parse_float(run_cfg["timeout_s"], "run.timeout_s")
            if timeout_s <= 0:
                raise ValueError("Invalid config value for run.timeout_s: must be > 0")

        kill_grace_s = 5.0
        if run_cfg.get("kill_grace_s") is not None:
            kill_grace_s = parse_float(run_cfg["kill_grace_s"], "run.kill_grace_s")
            if kill_grace_s < 0:
                raise ValueError("Invalid config value for run.kill_grace_s: must be >= 0")

        logging_cfg = get_mapping("logging")
        log_level = (optional_str(logging_cfg, "level", "logging.level") or "INFO").upper()
        if log_level not in ALLOWED_LOG_LEVELS:
            raise ValueError(f"Unknown logging.level: {logging_cfg.get('level')}")
        log_dir = normalize_optional_path(optional_str(logging_cfg, "log_dir", "logging.log_dir"))

        report_cfg = get_mapping("report")
        report_path = normalize_optional_path(optional_str(report_cfg, "path", "report.path"))

        if raw_stages is None:
            stages = REFERENCE_STAGES
            stages_source = "reference"
        else:
            if not isinstance(raw_stages, (list, tuple)):
                raise ValueError("Invalid config type for stages: expected list")
            if not raw_stages:
                raise ValueError("Invalid config value for stages: must list at least one stage")

            parsed: list[Stage] = []
            for idx, entry in enumerate(raw_stages):
                path = f"stages[{idx}]"
                if not isinstance(entry, Mapping):
                    raise ValueError(f"Invalid config type for {path}: expected mapping")
                name = optional_str(entry, "name", f"{path}.name")
                if name is None:
                    raise ValueError(f"Missing required config: {path}.name")
                if "command" not in entry or entry["command"] is None:
                    raise ValueError(f"Missing required config: {path}.command")
                command = parse_command(entry["command"], f"{path}.command")
                required = True
                if "required" in entry:
                    required = parse_bool(entry["required"], f"{path}.required")
                doc = optional_str(entry, "doc", f"{path}.doc")
                parsed.append(Stage(name=name, command=command, required=required, doc=doc))

            # Raises on duplicate names.
            StageRegistry.from_stages(parsed)
            stages = tuple(parsed)
            stages_source = "config"

        return (
            CheckConfig(
                mode=mode,  # type: ignore[arg-type]
                stop_on_failure=stop_on_failure,
                capture_output=capture_output,
                timeout_s=timeout_s,
                kill_grace_s=kill_grace_s,
                log_level=log_level,
                log_dir=log_dir,
                report_path=report_path,
                stages=stages,
                stages_source=stages_source,
            ),
            warnings,
        )
