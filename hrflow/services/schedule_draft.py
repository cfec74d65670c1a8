# =====================================================
# FILE: hrflow/services/schedule_draft.py
# Uncommitted work-schedule edits held apart from the stored schedule
# =====================================================

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from hrflow.core.exceptions import ValidationError
from hrflow.models.enums import RowMode
from hrflow.services.shift_grid import (
    LEGACY_LONG_TEXT_KEY,
    LEGACY_ROW_TYPE_KEY,
    FreeText,
    from_legacy,
    serialize_day_map,
)

EDITABLE_ENTRY_FIELDS = {
    "work_data",
    "row_mode",
    "long_text_value",
    "position_id",
    "display_order",
    "night_duty_required",
    "vacation_total",
    "vacation_used_total",
    "remarks",
}

EDITABLE_SCHEDULE_FIELDS = {"remarks"}


@dataclass(frozen=True)
class EntryDraft:
    """Changed fields of one row; only the keys present are written on save."""
    entry_id: int
    changes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def build(cls, entry_id: int, changes: Mapping[str, Any], max_day: int = 31) -> "EntryDraft":
        unknown = set(changes) - EDITABLE_ENTRY_FIELDS
        if unknown:
            raise ValidationError(f"Row {entry_id}: fields {sorted(unknown)} cannot be edited")

        normalized: Dict[str, Any] = dict(changes)
        if "work_data" in normalized:
            raw = normalized["work_data"] or {}
            content, days = from_legacy(raw, max_day)
            normalized["work_data"] = serialize_day_map(days)
            # Sentinel keys in an incoming map switch the row to free text
            if LEGACY_ROW_TYPE_KEY in raw or LEGACY_LONG_TEXT_KEY in raw:
                if isinstance(content, FreeText):
                    normalized["row_mode"] = RowMode.FREE_TEXT.value
                    normalized["long_text_value"] = content.text
                else:
                    normalized["row_mode"] = RowMode.STRUCTURED.value

        if "row_mode" in normalized:
            try:
                normalized["row_mode"] = RowMode(normalized["row_mode"]).value
            except ValueError:
                raise ValidationError(
                    f"Row {entry_id}: unknown row mode {normalized['row_mode']!r}, "
                    f"expected one of {[m.value for m in RowMode]}"
                )
        if "night_duty_required" in normalized:
            required = normalized["night_duty_required"] or 0
            if required < 0:
                raise ValidationError(f"Row {entry_id}: required night duties cannot be negative")
            normalized["night_duty_required"] = int(required)
        return cls(entry_id, normalized)

    def merged_with(self, later: "EntryDraft") -> "EntryDraft":
        return EntryDraft(self.entry_id, {**self.changes, **later.changes})


@dataclass(frozen=True)
class ScheduleDraft:
    """
    A client's pending edits for one schedule.

    Never consulted for authorization: the service checks the stored
    schedule before applying any of it.
    """
    schedule_id: int
    schedule_changes: Mapping[str, Any] = field(default_factory=dict)
    entries: Mapping[int, EntryDraft] = field(default_factory=dict)

    @classmethod
    def from_payload(
        cls,
        schedule_id: int,
        entries: Optional[list] = None,
        schedule_changes: Optional[Mapping[str, Any]] = None,
        max_day: int = 31
    ) -> "ScheduleDraft":
        schedule_changes = dict(schedule_changes or {})
        unknown = set(schedule_changes) - EDITABLE_SCHEDULE_FIELDS
        if unknown:
            raise ValidationError(f"Schedule fields {sorted(unknown)} cannot be edited")

        drafts: Dict[int, EntryDraft] = {}
        for item in entries or []:
            item = dict(item)
            entry_id = item.pop("entry_id")
            draft = EntryDraft.build(entry_id, item, max_day)
            drafts[entry_id] = drafts[entry_id].merged_with(draft) if entry_id in drafts else draft
        return cls(schedule_id, schedule_changes, drafts)

    @property
    def is_empty(self) -> bool:
        return not self.schedule_changes and not self.entries

    def merge(self, later: "ScheduleDraft") -> "ScheduleDraft":
        """Combine two drafts of the same schedule; the later one wins per field"""
        if later.schedule_id != self.schedule_id:
            raise ValidationError("Cannot merge drafts of different schedules")
        entries = dict(self.entries)
        for entry_id, draft in later.entries.items():
            entries[entry_id] = entries[entry_id].merged_with(draft) if entry_id in entries else draft
        return ScheduleDraft(
            self.schedule_id,
            {**self.schedule_changes, **later.schedule_changes},
            entries,
        )
