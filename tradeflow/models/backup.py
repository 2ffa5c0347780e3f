"""
Backup bundle schema.

The bundle is the single JSON object written to local storage exports and
to the external file mirror:

    { timestamp, version,
      strategies: [{id, name, description, entryRules[], exitRules[]}],
      journalData: { tradeId: {notes, setup, mistake, emotion, tags[],
                               followedRules[], initialStopLoss} },
      watchlist: [symbol...], uiPrefs: {...}, journalConfig: {...},
      settings: { settingKey: stringOrNull } }

Validated with pydantic on import so that a malformed bundle is rejected
before any store is touched.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

BACKUP_VERSION = "1.2"


class StrategyEntry(BaseModel):
    """One playbook strategy in the bundle."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(description="Strategy id (merge key)")
    name: str = Field(default="", description="Display name")
    description: str = Field(default="")
    entry_rules: List[str] = Field(default_factory=list, alias="entryRules")
    exit_rules: List[str] = Field(default_factory=list, alias="exitRules")


class AnnotationEntry(BaseModel):
    """Annotation overlay for one trade id in the bundle."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    notes: Optional[str] = None
    setup: Optional[str] = None
    mistake: Optional[str] = None
    emotion: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    followed_rules: List[str] = Field(default_factory=list, alias="followedRules")
    initial_stop_loss: Optional[float] = Field(default=None, alias="initialStopLoss")


class BackupSnapshot(BaseModel):
    """Versioned backup bundle."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    timestamp: Optional[str] = Field(default=None, description="ISO 8601 export time")
    version: str = Field(default=BACKUP_VERSION)
    strategies: Optional[List[StrategyEntry]] = None
    journal_data: Optional[Dict[str, AnnotationEntry]] = Field(default=None, alias="journalData")
    watchlist: Optional[List[str]] = None
    ui_prefs: Optional[Dict[str, Any]] = Field(default=None, alias="uiPrefs")
    journal_config: Optional[Dict[str, Any]] = Field(default=None, alias="journalConfig")
    settings: Optional[Dict[str, Optional[str]]] = None

    @model_validator(mode="after")
    def validate_has_payload(self) -> "BackupSnapshot":
        if self.strategies is None and self.journal_data is None:
            raise ValueError("Backup must contain strategies or journalData")
        return self

    def to_wire(self) -> Dict[str, Any]:
        """Dump using the persisted camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")
