import json
import sys

from stagekit import Stage, StageRunner, exit_code_for

from project_check.framework.report import write_report


def test_report_records_every_stage_in_order(tmp_path):
    stages = [
        Stage(name="test", command=(sys.executable, "-c", "print('ok')")),
        Stage(name="check", command=("project-check-missing-binary-0d1e",)),
        Stage(name="lint", command=(sys.executable, "-c", "import sys; sys.exit(2)")),
    ]
    outcome = StageRunner(capture_output=True).run(stages)
    path = tmp_path / "reports" / "check.json"

    write_report(
        str(path),
        outcome,
        run_id="unit_test_run",
        mode="parity",
        exit_code=exit_code_for(outcome, "parity"),
        config_meta={"mode": "default", "paths": []},
    )

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["run_id"] == "unit_test_run"
    assert payload["exit_code"] == 2
    assert payload["success"] is False
    assert payload["config"] == {"mode": "default", "paths": []}
    assert [s["name"] for s in payload["stages"]] == ["test", "check", "lint"]

    test_entry, check_entry, lint_entry = payload["stages"]
    assert test_entry["succeeded"] is True
    assert test_entry["stdout"].strip() == "ok"
    assert check_entry["exit_status"] == 127
    assert check_entry["launch_error"]
    assert check_entry["stdout"] is None
    assert lint_entry["exit_status"] == 2
    assert lint_entry["launch_error"] is None
    assert path.read_text(encoding="utf-8").endswith("\n")
