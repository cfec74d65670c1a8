# =====================================================
# FILE: hrflow/services/shift_grid.py
# Shift-grid aggregation: code classification, row totals,
# pattern advisories and free-text row mode
# =====================================================

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union
import logging

from hrflow.core.exceptions import ValidationError
from hrflow.models.enums import DutyMode, RowMode

logger = logging.getLogger(__name__)

# Legacy rows switched to free text by smuggling these keys into the day map
LEGACY_ROW_TYPE_KEY = "rowType"
LEGACY_LONG_TEXT_KEY = "longTextValue"
LEGACY_LONG_TEXT_MARKER = "longText"

DAY_SHIFT_CODES = {"D", "D1", "대"}
FULL_VACATION_CODES = {"AL", "ANNUAL"}
HALF_VACATION_CODES = {"반차", "HD", "HE"}

DUTY_WEEKDAY = "weekday"
DUTY_FRIDAY = "friday"
DUTY_SATURDAY = "saturday"
DUTY_HOLIDAY_SUNDAY = "holiday_sunday"

DUTY_BUCKET_LABELS = {
    DUTY_WEEKDAY: "평일",
    DUTY_FRIDAY: "금요일",
    DUTY_SATURDAY: "토요일",
    DUTY_HOLIDAY_SUNDAY: "공휴일 및 일요일",
}

# Last character of an on-call code (N1, 당직2, ...) overrides the calendar
DUTY_SUFFIX_BUCKETS = {
    "1": DUTY_WEEKDAY,
    "2": DUTY_SATURDAY,
    "3": DUTY_HOLIDAY_SUNDAY,
}


# =====================================================
# ROW CONTENT
# =====================================================

@dataclass(frozen=True)
class StructuredDays:
    """Per-day codes, keyed by day of month"""
    days: Dict[int, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FreeText:
    """Whole row replaced by one free-form string"""
    text: str = ""


RowContent = Union[StructuredDays, FreeText]


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def normalize_day_map(raw: Optional[Mapping], max_day: int = 31) -> Dict[int, str]:
    """
    Turn a stored or submitted day map into {day: code}.

    Keys may be ints or numeric strings (JSON); blank codes are dropped.

    Raises:
        ValidationError: non-numeric key or day outside 1..max_day
    """
    days: Dict[int, str] = {}
    for key, value in (raw or {}).items():
        if key in (LEGACY_ROW_TYPE_KEY, LEGACY_LONG_TEXT_KEY):
            continue
        try:
            day = int(key)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid day key '{key}'")
        if not 1 <= day <= max_day:
            raise ValidationError(f"Day {day} is outside 1..{max_day}")
        if value is None or str(value).strip() == "":
            continue
        days[day] = str(value).strip()
    return days


def serialize_day_map(days: Mapping[int, str]) -> Dict[str, str]:
    """JSON columns need string keys"""
    return {str(day): code for day, code in sorted(days.items())}


def from_legacy(raw: Optional[Mapping], max_day: int = 31) -> Tuple[RowContent, Dict[int, str]]:
    """
    Split a legacy day map that may carry the rowType/longTextValue sentinels.

    Returns the row content and the day codes to keep in storage.
    """
    raw = raw or {}
    days = normalize_day_map(raw, max_day)
    if raw.get(LEGACY_ROW_TYPE_KEY) == LEGACY_LONG_TEXT_MARKER:
        return FreeText(str(raw.get(LEGACY_LONG_TEXT_KEY) or "")), days
    return StructuredDays(days), days


def row_content(row_mode: Optional[str], stored_days: Optional[Mapping], long_text: Optional[str]) -> RowContent:
    if row_mode == RowMode.FREE_TEXT.value:
        return FreeText(long_text or "")
    return StructuredDays(normalize_day_map(stored_days))


# =====================================================
# CLASSIFICATION
# =====================================================

@dataclass(frozen=True)
class CodeContribution:
    night: int = 0
    off: int = 0
    vacation: float = 0.0


NO_CONTRIBUTION = CodeContribution()


def classify_code(code: Optional[str]) -> CodeContribution:
    """
    Counter contribution of one shift code (case-insensitive, trimmed).

    N / NIGHT*  -> one night
    HN          -> one night and half a vacation day
    OFF*        -> one off day
    *연* / AL / ANNUAL -> one vacation day
    반차 / HD / HE     -> half a vacation day
    """
    value = normalize_code(code)
    if not value:
        return NO_CONTRIBUTION
    if value == "N" or value.startswith("NIGHT"):
        return CodeContribution(night=1)
    if value == "HN":
        return CodeContribution(night=1, vacation=0.5)
    if value.startswith("OFF"):
        return CodeContribution(off=1)
    if "연" in value or value in FULL_VACATION_CODES:
        return CodeContribution(vacation=1.0)
    if value in HALF_VACATION_CODES:
        return CodeContribution(vacation=0.5)
    return NO_CONTRIBUTION


def is_night_code(code: Optional[str]) -> bool:
    value = normalize_code(code)
    return value == "N" or value.startswith("NIGHT") or value == "HN"


def is_off_code(code: Optional[str]) -> bool:
    return normalize_code(code).startswith("OFF")


def is_day_code(code: Optional[str]) -> bool:
    return normalize_code(code) in DAY_SHIFT_CODES


# =====================================================
# DUTY RULES
# =====================================================

@dataclass(frozen=True)
class DutyRule:
    """
    How night/on-call duties are counted for one schedule month.

    ``holidays`` holds (month, day) pairs from the holiday calendar.
    """
    mode: DutyMode = DutyMode.NIGHT_SHIFT
    symbol: str = "N"
    use_friday: bool = False
    use_holiday_sunday: bool = True
    year: Optional[int] = None
    month: Optional[int] = None
    holidays: Set[Tuple[int, int]] = field(default_factory=set)

    def matches(self, code: str) -> bool:
        symbol = normalize_code(self.symbol)
        return bool(symbol) and code.startswith(symbol)

    def bucket_for(self, code: str, day: int) -> str:
        suffix = code[-1:]
        if suffix in DUTY_SUFFIX_BUCKETS:
            return DUTY_SUFFIX_BUCKETS[suffix]

        if self.year is None or self.month is None:
            return DUTY_WEEKDAY
        weekday = date(self.year, self.month, day).weekday()  # Monday == 0
        is_holiday = (self.month, day) in self.holidays
        if self.use_holiday_sunday and (is_holiday or weekday == 6):
            return DUTY_HOLIDAY_SUNDAY
        if weekday == 5:
            return DUTY_SATURDAY
        if weekday == 4 and self.use_friday:
            return DUTY_FRIDAY
        return DUTY_WEEKDAY


def empty_duty_detail() -> Dict[str, int]:
    return {bucket: 0 for bucket in DUTY_BUCKET_LABELS}


# =====================================================
# RECOMPUTE
# =====================================================

@dataclass(frozen=True)
class EntryTotals:
    night_duty_actual: int = 0
    night_duty_additional: int = 0
    off_count: int = 0
    vacation_used_this_month: float = 0.0
    duty_detail: Optional[Dict[str, int]] = None


def recompute(
    content: RowContent,
    night_duty_required: int = 0,
    rule: Optional[DutyRule] = None
) -> EntryTotals:
    """
    Derive a row's counters from its content.

    Pure: required night duties, vacation total and used-total vacation are
    inputs or independent fields and are never produced here. Free-text rows
    contribute nothing.
    """
    required = night_duty_required or 0
    on_call = rule is not None and rule.mode == DutyMode.ON_CALL_DUTY
    detail = empty_duty_detail() if on_call else None

    if isinstance(content, FreeText):
        return EntryTotals(night_duty_additional=-required, duty_detail=detail)

    night = 0
    off = 0
    vacation = 0.0
    for day, raw_code in sorted(content.days.items()):
        code = normalize_code(raw_code)
        if not code:
            continue

        if not on_call:
            contribution = classify_code(code)
            night += contribution.night
            off += contribution.off
            vacation += contribution.vacation
            continue

        counted_as_duty = rule.matches(code)
        if counted_as_duty:
            night += 1
            detail[rule.bucket_for(code, day)] += 1
        if code == "HN":
            if not counted_as_duty:
                night += 1
            vacation += 0.5
        elif code.startswith("OFF"):
            off += 1
        elif "연" in code or code in FULL_VACATION_CODES:
            vacation += 1.0
        elif code in HALF_VACATION_CODES:
            vacation += 0.5

    return EntryTotals(
        night_duty_actual=night,
        night_duty_additional=night - required,
        off_count=off,
        vacation_used_this_month=vacation,
        duty_detail=detail,
    )


# =====================================================
# EDITING
# =====================================================

def apply_code(days: Mapping[int, str], selected_days: Iterable[int], code: Optional[str], max_day: int = 31) -> Dict[int, str]:
    """
    Assign one code to every selected day of a single row; a blank code clears.

    Returns a new day map, the input is left untouched.
    """
    selection = list(selected_days)
    if not selection:
        raise ValidationError("No days selected")
    for day in selection:
        if not isinstance(day, int) or not 1 <= day <= max_day:
            raise ValidationError(f"Day {day} is outside 1..{max_day}")

    updated = dict(days)
    value = (code or "").strip()
    for day in selection:
        if value:
            updated[day] = value
        else:
            updated.pop(day, None)
    return updated


def toggle_row_mode(content: RowContent, stored_days: Mapping[int, str], text: str = "") -> RowContent:
    """
    Switch a row between structured days and free text.

    Day codes stay in storage while the row is free text and come back
    unchanged when it is switched back.
    """
    if isinstance(content, FreeText):
        return StructuredDays(dict(stored_days))
    return FreeText(text or "")


# =====================================================
# PATTERN ADVISORIES
# =====================================================

@dataclass(frozen=True)
class PatternWarning:
    days: Tuple[int, int, int]
    message: str


def check_consecutive_pattern(content: RowContent) -> List[PatternWarning]:
    """
    Flag night -> off -> day-shift on three consecutive days.

    Advisory only; never blocks an edit.
    """
    if isinstance(content, FreeText):
        return []

    days = content.days
    warnings: List[PatternWarning] = []
    for day in sorted(days):
        second, third = day + 1, day + 2
        if second not in days or third not in days:
            continue
        if is_night_code(days[day]) and is_off_code(days[second]) and is_day_code(days[third]):
            warnings.append(PatternWarning(
                days=(day, second, third),
                message=f"{day}일(N) → {second}일(Off) → {third}일(D) 연속 근무 패턴 발견",
            ))
    return warnings
