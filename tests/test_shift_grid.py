import pytest

from hrflow.core.exceptions import ValidationError
from hrflow.models.enums import DutyMode
from hrflow.services.shift_grid import (
    DUTY_FRIDAY,
    DUTY_HOLIDAY_SUNDAY,
    DUTY_SATURDAY,
    DUTY_WEEKDAY,
    DutyRule,
    FreeText,
    StructuredDays,
    apply_code,
    check_consecutive_pattern,
    classify_code,
    from_legacy,
    normalize_day_map,
    recompute,
    serialize_day_map,
    toggle_row_mode,
)


# =====================================================
# CLASSIFICATION
# =====================================================

@pytest.mark.parametrize("code,night,off,vacation", [
    ("N", 1, 0, 0.0),
    (" n ", 1, 0, 0.0),
    ("Night", 1, 0, 0.0),
    ("HN", 1, 0, 0.5),
    ("Off", 0, 1, 0.0),
    ("OFF2", 0, 1, 0.0),
    ("연차", 0, 0, 1.0),
    ("AL", 0, 0, 1.0),
    ("annual", 0, 0, 1.0),
    ("반차", 0, 0, 0.5),
    ("HD", 0, 0, 0.5),
    ("HE", 0, 0, 0.5),
    ("D", 0, 0, 0.0),
    ("E", 0, 0, 0.0),
    ("", 0, 0, 0.0),
    (None, 0, 0, 0.0),
])
def test_classify_code(code, night, off, vacation):
    contribution = classify_code(code)
    assert contribution.night == night
    assert contribution.off == off
    assert contribution.vacation == vacation


# =====================================================
# RECOMPUTE
# =====================================================

def test_apply_night_code_to_three_days_adds_three_nights():
    days = apply_code({}, [5, 6, 7], "N")
    totals = recompute(StructuredDays(days))
    assert totals.night_duty_actual == 3


def test_recompute_mixed_row():
    days = {1: "N", 2: "N", 3: "Off", 4: "연차", 5: "HD", 6: "HN", 7: "D"}
    totals = recompute(StructuredDays(days), night_duty_required=4)

    assert totals.night_duty_actual == 3
    assert totals.night_duty_additional == -1
    assert totals.off_count == 1
    assert totals.vacation_used_this_month == 2.0
    assert totals.duty_detail is None


def test_recompute_is_repeatable():
    content = StructuredDays({1: "N", 2: "Off"})
    assert recompute(content, 1) == recompute(content, 1)


def test_free_text_row_contributes_nothing():
    totals = recompute(FreeText("교육 파견"), night_duty_required=5)
    assert totals.night_duty_actual == 0
    assert totals.off_count == 0
    assert totals.vacation_used_this_month == 0
    assert totals.night_duty_additional == -5


def test_on_call_mode_buckets_by_calendar():
    # March 2025: the 1st is a Saturday holiday, the 2nd a Sunday, the 7th a Friday
    rule = DutyRule(
        mode=DutyMode.ON_CALL_DUTY,
        symbol="N",
        use_friday=True,
        use_holiday_sunday=True,
        year=2025,
        month=3,
        holidays={(3, 1), (3, 3)},
    )
    days = {1: "N", 2: "N", 3: "N", 4: "N", 7: "N", 8: "N", 10: "Off"}
    totals = recompute(StructuredDays(days), night_duty_required=0, rule=rule)

    assert totals.night_duty_actual == 6
    assert totals.off_count == 1
    assert totals.duty_detail == {
        DUTY_WEEKDAY: 1,
        DUTY_FRIDAY: 1,
        DUTY_SATURDAY: 1,
        DUTY_HOLIDAY_SUNDAY: 3,
    }


def test_on_call_suffix_overrides_calendar():
    rule = DutyRule(mode=DutyMode.ON_CALL_DUTY, symbol="N", year=2025, month=3)
    # the 4th is a Tuesday but the suffix says holiday/Sunday
    totals = recompute(StructuredDays({4: "N3", 5: "N2"}), rule=rule)
    assert totals.duty_detail[DUTY_HOLIDAY_SUNDAY] == 1
    assert totals.duty_detail[DUTY_SATURDAY] == 1


def test_on_call_suffix_is_read_from_end_of_longer_code():
    rule = DutyRule(mode=DutyMode.ON_CALL_DUTY, symbol="당", year=2025, month=3)
    # the 8th is a Saturday, but the trailing 1 files it as a weekday duty
    totals = recompute(StructuredDays({8: "당직1", 4: "당직3"}), rule=rule)
    assert totals.night_duty_actual == 2
    assert totals.duty_detail[DUTY_WEEKDAY] == 1
    assert totals.duty_detail[DUTY_HOLIDAY_SUNDAY] == 1
    assert totals.duty_detail[DUTY_SATURDAY] == 0


def test_on_call_without_holiday_sunday_counts_sunday_as_weekday():
    rule = DutyRule(mode=DutyMode.ON_CALL_DUTY, symbol="N", use_holiday_sunday=False, year=2025, month=3)
    totals = recompute(StructuredDays({2: "N"}), rule=rule)
    assert totals.duty_detail[DUTY_WEEKDAY] == 1
    assert totals.duty_detail[DUTY_HOLIDAY_SUNDAY] == 0


def test_on_call_friday_without_flag_is_weekday():
    rule = DutyRule(mode=DutyMode.ON_CALL_DUTY, symbol="N", use_friday=False, year=2025, month=3)
    totals = recompute(StructuredDays({7: "N"}), rule=rule)
    assert totals.duty_detail[DUTY_WEEKDAY] == 1
    assert totals.duty_detail[DUTY_FRIDAY] == 0


def test_on_call_half_night_counts_once():
    rule = DutyRule(mode=DutyMode.ON_CALL_DUTY, symbol="당", year=2025, month=3)
    totals = recompute(StructuredDays({4: "HN", 5: "당"}), rule=rule)
    assert totals.night_duty_actual == 2
    assert totals.vacation_used_this_month == 0.5


# =====================================================
# EDITING
# =====================================================

def test_apply_code_returns_new_map():
    original = {1: "D"}
    updated = apply_code(original, [2, 3], "E")
    assert original == {1: "D"}
    assert updated == {1: "D", 2: "E", 3: "E"}


def test_apply_blank_code_clears_days():
    assert apply_code({1: "D", 2: "N"}, [2], "  ") == {1: "D"}


@pytest.mark.parametrize("days", [[], [0], [32], [31]])
def test_apply_code_rejects_bad_days(days):
    with pytest.raises(ValidationError):
        apply_code({}, days, "N", max_day=30)


def test_normalize_day_map_accepts_json_keys():
    assert normalize_day_map({"1": "D", "2": "", "15": " N "}) == {1: "D", 15: "N"}


def test_normalize_day_map_rejects_out_of_range():
    with pytest.raises(ValidationError):
        normalize_day_map({"31": "D"}, max_day=30)
    with pytest.raises(ValidationError):
        normalize_day_map({"abc": "D"})


def test_serialize_day_map_uses_string_keys():
    assert serialize_day_map({10: "N", 2: "D"}) == {"2": "D", "10": "N"}


def test_legacy_sentinel_keys_become_free_text():
    content, days = from_legacy({"rowType": "longText", "longTextValue": "병가", "3": "D"})
    assert content == FreeText("병가")
    assert days == {3: "D"}


def test_legacy_map_without_sentinel_is_structured():
    content, days = from_legacy({"1": "N"})
    assert content == StructuredDays({1: "N"})


def test_toggle_row_mode_keeps_stored_days():
    stored = {1: "N", 2: "Off"}
    free = toggle_row_mode(StructuredDays(stored), stored, "파견")
    assert free == FreeText("파견")
    assert recompute(free).night_duty_actual == 0

    back = toggle_row_mode(free, stored)
    assert back == StructuredDays(stored)
    assert recompute(back).night_duty_actual == 1


# =====================================================
# PATTERN ADVISORIES
# =====================================================

def test_night_off_day_pattern_warns_once():
    warnings = check_consecutive_pattern(StructuredDays({10: "N", 11: "Off", 12: "D"}))
    assert len(warnings) == 1
    assert warnings[0].days == (10, 11, 12)
    assert warnings[0].message == "10일(N) → 11일(Off) → 12일(D) 연속 근무 패턴 발견"


def test_night_day_off_pattern_is_fine():
    assert check_consecutive_pattern(StructuredDays({10: "N", 11: "D", 12: "Off"})) == []


def test_free_text_row_has_no_warnings():
    assert check_consecutive_pattern(FreeText("N Off D")) == []
