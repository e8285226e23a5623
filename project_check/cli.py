from __future__ import annotations

import argparse
import logging
import sys
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from stagekit import ALLOWED_EXIT_MODES, DefaultStageRecorder, StageRunner, exit_code_for

from project_check import __version__
from project_check.foundation.config_io import load_config
from project_check.foundation.logging_utils import (
    close_logger,
    configure_stdio_utf8,
    setup_operational_logger,
)
from project_check.framework.config import CheckConfig, parse_float
from project_check.framework.report import write_report

CONFIG_ERROR_EXIT_CODE = 2


def generate_run_id() -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{timestamp}_{uuid.uuid4().hex[:8]}"


def _positive_float(raw: str) -> float:
    try:
        value = parse_float(raw, "--timeout")
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    if value <= 0:
        raise argparse.ArgumentTypeError("--timeout must be > 0")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-check",
        description="Run the project's verification stages (test, check, fmt, lint) in order.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", default=None, help="Config YAML to load (skips discovery)")
    parser.add_argument(
        "--mode",
        choices=ALLOWED_EXIT_MODES,
        default=None,
        help="parity: exit with the last stage's status; aggregate: fail if any required stage failed",
    )
    parser.add_argument(
        "--stage",
        action="append",
        dest="stages",
        default=None,
        metavar="NAME",
        help="Run only this stage (repeatable; configured order is kept)",
    )
    parser.add_argument(
        "--stop-on-failure",
        action="store_true",
        default=None,
        help="Skip remaining stages after the first failing required stage",
    )
    parser.add_argument(
        "--capture-output",
        action="store_true",
        default=None,
        help="Capture each stage's output and replay it after the stage exits",
    )
    parser.add_argument("--timeout", type=_positive_float, default=None, metavar="SECONDS")
    parser.add_argument("--report", default=None, metavar="PATH", help="Write a JSON run report")
    parser.add_argument("--log-dir", default=None, help="Also write an operational log file here")
    parser.add_argument(
        "--list-stages", action="store_true", help="List configured stages and exit"
    )
    return parser


def list_stages(cfg: CheckConfig, *, out=None) -> None:
    out = out or sys.stdout
    rows = cfg.registry.describe()
    width = max((len(row["name"]) for row in rows), default=0)
    for row in rows:
        flag = "required" if row["required"] else "optional"
        print(f"{row['name']:<{width}}  {flag:<8}  {' '.join(row['command'])}", file=out)


def run_checks(
    cfg: CheckConfig,
    *,
    run_id: str,
    logger: logging.Logger,
    selected: Sequence[str] | None = None,
    config_meta: dict[str, Any] | None = None,
) -> int:
    stages = cfg.registry.select(selected)
    logger.info(
        "Running %d stage(s) (mode=%s, stop_on_failure=%s, source=%s)",
        len(stages),
        cfg.mode,
        str(cfg.stop_on_failure).lower(),
        cfg.stages_source,
    )

    runner = StageRunner(
        recorder=DefaultStageRecorder(logger),
        stop_on_failure=cfg.stop_on_failure,
        capture_output=cfg.capture_output,
        timeout_s=cfg.timeout_s,
        kill_grace_s=cfg.kill_grace_s,
    )
    outcome = runner.run(stages)
    exit_code = exit_code_for(outcome, cfg.mode)

    if cfg.mode == "parity" and exit_code == 0 and not outcome.success:
        failed = ", ".join(result.stage.name for result in outcome.failed)
        logger.warning(
            "Exit code reflects the last stage only; earlier stages failed: %s", failed
        )
    logger.info("Exit code %d (mode=%s)", exit_code, cfg.mode)

    if cfg.report_path:
        try:
            write_report(
                cfg.report_path,
                outcome,
                run_id=run_id,
                mode=cfg.mode,
                exit_code=exit_code,
                config_meta=config_meta,
            )
            logger.info("Wrote run report %s", cfg.report_path)
        except OSError:
            logger.exception("Failed to write run report %s", cfg.report_path)

    return exit_code


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    configure_stdio_utf8()
    run_id = generate_run_id()

    logger, _ = setup_operational_logger(run_id)
    try:
        try:
            cfg_dict, cfg_meta = load_config(config_path=args.config)
            cfg, warnings = CheckConfig.from_dict(cfg_dict, base_dir=cfg_meta.get("base_dir"))
            cfg = cfg.with_overrides(
                mode=args.mode,
                stop_on_failure=args.stop_on_failure,
                capture_output=args.capture_output,
                timeout_s=args.timeout,
                log_dir=args.log_dir,
                report_path=args.report,
            )
            if args.stages:
                cfg.registry.select(args.stages)
        except (ValueError, FileNotFoundError) as exc:
            logger.error("Configuration error: %s", exc)
            return CONFIG_ERROR_EXIT_CODE

        if args.list_stages:
            list_stages(cfg)
            return 0

        try:
            logger, _ = setup_operational_logger(
                run_id, log_dir=cfg.log_dir, level=cfg.log_level
            )
        except OSError as exc:
            logger.error("Configuration error: cannot use log directory %s: %s", cfg.log_dir, exc)
            return CONFIG_ERROR_EXIT_CODE
        logger.debug("Config loaded (mode=%s, paths=%s)", cfg_meta["mode"], cfg_meta["paths"])
        for warning in warnings:
            logger.warning(warning)

        return run_checks(
            cfg, run_id=run_id, logger=logger, selected=args.stages, config_meta=cfg_meta
        )
    finally:
        close_logger(logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
