"""Annotation record: the locally owned overlay for one broker trade."""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .trade import ANNOTATION_FIELDS


# Python attribute name -> persisted wire key
WIRE_KEYS: Dict[str, str] = {
    "notes": "notes",
    "setup": "setup",
    "mistake": "mistake",
    "emotion": "emotion",
    "tags": "tags",
    "followed_rules": "followedRules",
    "initial_stop_loss": "initialStopLoss",
}


def _unique(values: Iterable[Any]) -> Tuple[str, ...]:
    """Deduplicate while keeping first-seen order."""
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(str(value), None)
    return tuple(seen)


@dataclass(frozen=True)
class AnnotationRecord:
    """
    User-owned fields attached to a trade id.

    Created on first edit or first successful enrichment, never deleted
    automatically, and untouched by ledger resyncs.
    """

    notes: str = ""
    setup: str = ""
    mistake: str = ""
    emotion: str = ""
    tags: Tuple[str, ...] = ()
    followed_rules: Tuple[str, ...] = ()
    initial_stop_loss: Optional[float] = None

    def merged(self, updates: Mapping[str, Any]) -> "AnnotationRecord":
        """
        Return a copy with the given fields replaced.

        Args:
            updates: Attribute name -> new value. Only annotation fields are accepted.

        Raises:
            ValueError: If an unknown field name is given.
        """
        unknown = set(updates) - set(WIRE_KEYS)
        if unknown:
            raise ValueError(f"Unknown annotation fields: {sorted(unknown)}")

        normalized: Dict[str, Any] = {}
        for name, value in updates.items():
            if name in ("tags", "followed_rules"):
                normalized[name] = _unique(value or ())
            elif name == "initial_stop_loss":
                normalized[name] = float(value) if value is not None else None
            else:
                normalized[name] = value or ""
        return replace(self, **normalized)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using the persisted camelCase keys."""
        return {
            "notes": self.notes,
            "setup": self.setup,
            "mistake": self.mistake,
            "emotion": self.emotion,
            "tags": list(self.tags),
            "followedRules": list(self.followed_rules),
            "initialStopLoss": self.initial_stop_loss,
        }

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "AnnotationRecord":
        """Build a record from persisted camelCase keys; missing keys take defaults."""
        updates = {
            name: data[key]
            for name, key in WIRE_KEYS.items()
            if key in data
        }
        return cls().merged(updates)


if frozenset(f.name for f in fields(AnnotationRecord)) != ANNOTATION_FIELDS:
    raise TypeError("AnnotationRecord fields must match Trade.ANNOTATION_FIELDS")
