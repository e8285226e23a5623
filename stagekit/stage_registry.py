from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import Any, Iterable

from stagekit.stage_types import Stage


@dataclass(frozen=True)
class StageRegistry:
    _stages: tuple[Stage, ...]

    @classmethod
    def from_stages(cls, stages: Iterable[Stage]) -> "StageRegistry":
        entries: list[Stage] = []
        seen: set[str] = set()
        for stage in stages:
            if not isinstance(stage, Stage):
                raise TypeError(f"Expected Stage (got {type(stage).__name__})")
            if stage.name in seen:
                raise ValueError(f"Duplicate stage name: {stage.name}")
            seen.add(stage.name)
            entries.append(stage)
        return cls(_stages=tuple(entries))

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self):
        return iter(self._stages)

    def available(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self._stages)

    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def describe(self) -> tuple[dict[str, Any], ...]:
        rows: list[dict[str, Any]] = []
        for stage in self._stages:
            rows.append(
                {
                    "name": stage.name,
                    "command": list(stage.command),
                    "required": stage.required,
                    "doc": stage.doc,
                }
            )
        return tuple(rows)

    def get(self, name: str) -> Stage:
        key = (name or "").strip()
        for stage in self._stages:
            if stage.name == key:
                return stage

        message = f"Unknown stage: {name}"
        suggestions = self.suggest(key)
        if suggestions:
            message += f" (did you mean: {', '.join(suggestions)})"
        else:
            message += f" (available: {', '.join(self.available()) or '<none>'})"
        raise ValueError(message)

    def select(self, names: Iterable[str] | None) -> tuple[Stage, ...]:
        """Return the named stages in configured order; no names selects everything."""

        requested = [str(name).strip() for name in (names or ()) if str(name).strip()]
        if not requested:
            return self._stages

        wanted = {self.get(name).name for name in requested}
        return tuple(stage for stage in self._stages if stage.name in wanted)

    def suggest(self, name: str, *, limit: int = 3) -> tuple[str, ...]:
        key = (name or "").strip()
        if not key or not self._stages:
            return ()
        return tuple(difflib.get_close_matches(key, list(self.available()), n=limit))
