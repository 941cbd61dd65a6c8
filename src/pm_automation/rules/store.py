"""Persist rule definitions as a JSON document.

Only the caller-supplied part of each rule (:class:`RuleSpec`) is stored; ids and
execution counters are runtime state and are reassigned on load.
"""

from __future__ import annotations

import json
from pathlib import Path

from .models import RuleSpec


class RuleStore:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[RuleSpec]:
        if not self._path.exists():
            return []

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        items = raw.get("rules") if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise ValueError(f"Expected a list of rules in {self._path}")
        return [RuleSpec.model_validate(item) for item in items]

    def save(self, rules: list[RuleSpec]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"rules": [rule.model_dump(mode="json") for rule in rules]}
        self._path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
