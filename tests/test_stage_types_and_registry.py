import pytest

from stagekit import PipelineOutcome, Stage, StageRegistry, StageResult


def _registry() -> StageRegistry:
    return StageRegistry.from_stages(
        [
            Stage(name="test", command=("cargo", "test")),
            Stage(name="check", command=("cargo", "check")),
            Stage(name="fmt", command=("cargo", "fmt", "--", "--check")),
            Stage(name="lint", command=("cargo", "clippy", "--", "-D", "warnings")),
        ]
    )


def test_stage_normalizes_name_and_command():
    stage = Stage(name="  test ", command=["cargo", "test"])

    assert stage.name == "test"
    assert stage.command == ("cargo", "test")
    assert stage.required is True
    assert stage.display_command == "cargo test"


@pytest.mark.parametrize(
    "kwargs, exc",
    [
        ({"name": "", "command": ("cargo",)}, TypeError),
        ({"name": "test", "command": "cargo test"}, TypeError),
        ({"name": "test", "command": ()}, ValueError),
        ({"name": "test", "command": (" ",)}, ValueError),
        ({"name": "test", "command": ("cargo", 1)}, TypeError),
        ({"name": "test", "command": ("cargo",), "required": "yes"}, TypeError),
    ],
)
def test_stage_rejects_invalid_fields(kwargs, exc):
    with pytest.raises(exc):
        Stage(**kwargs)


def test_stage_is_immutable():
    stage = Stage(name="test", command=("cargo", "test"))
    with pytest.raises(AttributeError):
        stage.name = "other"  # type: ignore[misc]


def test_outcome_success_only_counts_required_stages():
    required = Stage(name="test", command=("cargo", "test"))
    optional = Stage(name="docs", command=("cargo", "doc"), required=False)

    outcome = PipelineOutcome(
        results=(
            StageResult(stage=required, index=0, exit_status=0),
            StageResult(stage=optional, index=1, exit_status=1),
        )
    )

    assert outcome.success is True
    assert outcome.last_exit_status == 1
    assert [r.stage.name for r in outcome.failed] == ["docs"]
    assert outcome.first_required_failure() is None


def test_registry_preserves_configured_order():
    assert _registry().available() == ("test", "check", "fmt", "lint")


def test_registry_rejects_duplicates():
    with pytest.raises(ValueError, match="Duplicate stage name: test"):
        StageRegistry.from_stages(
            [Stage(name="test", command=("a",)), Stage(name="test", command=("b",))]
        )


def test_registry_select_keeps_configured_order():
    selected = _registry().select(["lint", "test"])

    assert [stage.name for stage in selected] == ["test", "lint"]


def test_registry_select_empty_means_all():
    assert len(_registry().select(None)) == 4
    assert len(_registry().select([])) == 4


def test_registry_unknown_stage_suggests_close_match():
    with pytest.raises(ValueError, match=r"Unknown stage: lnt \(did you mean: lint\)"):
        _registry().select(["lnt"])


def test_registry_unknown_stage_lists_available_when_nothing_is_close():
    with pytest.raises(ValueError, match=r"available: test, check, fmt, lint"):
        _registry().get("zzzzzz")


def test_registry_describe_rows():
    rows = _registry().describe()

    assert rows[2] == {
        "name": "fmt",
        "command": ["cargo", "fmt", "--", "--check"],
        "required": True,
        "doc": None,
    }
