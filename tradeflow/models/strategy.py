"""Playbook strategy model."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple


@dataclass(frozen=True)
class Strategy:
    """A trading setup with its entry and exit rules."""

    id: str
    name: str
    description: str = ""
    entry_rules: Tuple[str, ...] = ()
    exit_rules: Tuple[str, ...] = ()

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "entryRules": list(self.entry_rules),
            "exitRules": list(self.exit_rules),
        }

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "Strategy":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            description=str(data.get("description") or ""),
            entry_rules=tuple(str(r) for r in data.get("entryRules") or ()),
            exit_rules=tuple(str(r) for r in data.get("exitRules") or ()),
        )
