"""Built-in reference stage sequence, used when no config file supplies `stages`."""

from __future__ import annotations

from stagekit import Stage, StageRegistry

REFERENCE_STAGES: tuple[Stage, ...] = (
    Stage(name="test", command=("cargo", "test"), doc="Run the project's test suite"),
    Stage(name="check", command=("cargo", "check"), doc="Fast build/consistency check"),
    Stage(
        name="fmt",
        command=("cargo", "fmt", "--", "--check"),
        doc="Verify formatting without rewriting files",
    ),
    Stage(
        name="lint",
        command=("cargo", "clippy", "--", "-D", "warnings"),
        doc="Lint with warnings elevated to errors",
    ),
)


def reference_registry() -> StageRegistry:
    return StageRegistry.from_stages(REFERENCE_STAGES)
