# tests/test_recurrence.py

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from taskhub.exceptions import RecurrenceConfigError
from taskhub.schemas.recurrence import MonthlyConfig, RecurrenceType, WeeklyConfig
from taskhub.services.recurrence import (
    RECURRENCE_PRESETS,
    add_months,
    compute_next_occurrence,
    describe_recurrence,
    parse_recurrence_config,
    preview_occurrences,
)

UTC = timezone.utc


def at(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=UTC)


# --- daily -----------------------------------------------------------------


def test_daily_adds_interval_days() -> None:
    assert compute_next_occurrence(at(2024, 1, 1), "daily", {"daily": {"interval": 1}}) == at(2024, 1, 2)
    assert compute_next_occurrence(at(2024, 1, 30), "daily", {"daily": {"interval": 3}}) == at(2024, 2, 2)


def test_daily_keeps_time_of_day() -> None:
    anchor = datetime(2024, 3, 9, 14, 30, tzinfo=UTC)
    assert compute_next_occurrence(anchor, "daily", {"daily": {"interval": 1}}) == anchor + timedelta(days=1)


# --- weekly ----------------------------------------------------------------


def test_weekly_picks_next_day_in_same_week() -> None:
    # 2024-01-03 is a Wednesday; Mon/Wed/Fri -> Friday the 5th
    config = {"weekly": {"interval": 1, "daysOfWeek": [1, 3, 5]}}
    assert compute_next_occurrence(at(2024, 1, 3), "weekly", config) == at(2024, 1, 5)


def test_weekly_wraps_to_first_day_of_next_week() -> None:
    config = {"weekly": {"interval": 1, "daysOfWeek": [1, 3, 5]}}
    assert compute_next_occurrence(at(2024, 1, 5), "weekly", config) == at(2024, 1, 8)


def test_weekly_interval_skips_whole_weeks_when_wrapping() -> None:
    config = {"weekly": {"interval": 2, "daysOfWeek": [1, 3]}}
    # Still within the week: Monday -> Wednesday, interval not applied
    assert compute_next_occurrence(at(2024, 1, 1), "weekly", config) == at(2024, 1, 3)
    # Wrap from Wednesday: skip one extra week
    assert compute_next_occurrence(at(2024, 1, 3), "weekly", config) == at(2024, 1, 15)


def test_weekly_sunday_only_from_sunday_moves_a_full_week() -> None:
    config = {"weekly": {"interval": 1, "daysOfWeek": [0]}}
    assert compute_next_occurrence(at(2024, 1, 7), "weekly", config) == at(2024, 1, 14)


def test_weekly_unsorted_and_duplicate_days() -> None:
    config = {"weekly": {"interval": 1, "daysOfWeek": [5, 1, 5]}}
    assert compute_next_occurrence(at(2024, 1, 2), "weekly", config) == at(2024, 1, 5)


# --- monthly ---------------------------------------------------------------


def test_monthly_day_31_clamps_to_february_non_leap() -> None:
    config = {"monthly": {"interval": 1, "dayOfMonth": 31}}
    assert compute_next_occurrence(at(2023, 1, 31), "monthly", config) == at(2023, 2, 28)


def test_monthly_day_31_clamps_to_february_leap() -> None:
    config = {"monthly": {"interval": 1, "dayOfMonth": 31}}
    assert compute_next_occurrence(at(2024, 1, 15), "monthly", config) == at(2024, 2, 29)


def test_monthly_wraps_year() -> None:
    config = {"monthly": {"interval": 2, "dayOfMonth": 15}}
    assert compute_next_occurrence(at(2024, 12, 10), "monthly", config) == at(2025, 2, 15)


def test_monthly_first_monday() -> None:
    config = {"monthly": {"interval": 1, "weekOfMonth": 1, "dayOfWeek": 1}}
    assert compute_next_occurrence(at(2024, 1, 10), "monthly", config) == at(2024, 2, 5)


def test_monthly_third_wednesday() -> None:
    config = {"monthly": {"interval": 1, "weekOfMonth": 3, "dayOfWeek": 3}}
    # March 2024 Wednesdays: 6, 13, 20, 27
    assert compute_next_occurrence(at(2024, 2, 21), "monthly", config) == at(2024, 3, 20)


def test_monthly_last_friday() -> None:
    config = {"monthly": {"interval": 1, "weekOfMonth": -1, "dayOfWeek": 5}}
    # February 2024 ends on Thursday the 29th
    assert compute_next_occurrence(at(2024, 1, 26), "monthly", config) == at(2024, 2, 23)


def test_monthly_missing_fifth_weekday_uses_last_one() -> None:
    config = {"monthly": {"interval": 1, "weekOfMonth": 5, "dayOfWeek": 1}}
    # February 2024 Mondays: 5, 12, 19, 26
    assert compute_next_occurrence(at(2024, 1, 29), "monthly", config) == at(2024, 2, 26)


def test_add_months_clamps_day() -> None:
    assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


# --- custom and fallbacks --------------------------------------------------


def test_custom_expression_falls_back_to_one_day() -> None:
    config = {"custom": {"expression": "0 9 * * 1-5"}}
    assert compute_next_occurrence(at(2024, 1, 1), "custom", config) == at(2024, 1, 2)


@pytest.mark.parametrize(
    ("recurrence_type", "config"),
    [
        ("yearly", {}),
        ("weekly", {"weekly": {"interval": 1, "daysOfWeek": []}}),
        ("weekly", {"weekly": {"interval": 0, "daysOfWeek": [1]}}),
        ("monthly", {"monthly": {"interval": 1}}),
        ("monthly", {"monthly": {"interval": 1, "weekOfMonth": 2}}),
        ("daily", {"daily": "often"}),
    ],
)
def test_malformed_config_never_raises(recurrence_type: str, config: dict) -> None:
    assert compute_next_occurrence(at(2024, 5, 1), recurrence_type, config) == at(2024, 5, 2)


@pytest.mark.parametrize(
    ("recurrence_type", "config"),
    [
        ("daily", {"daily": {"interval": 1}}),
        ("weekly", {"weekly": {"interval": 1, "daysOfWeek": [1]}}),
        ("monthly", {"monthly": {"interval": 1, "dayOfMonth": 1}}),
        ("custom", {"custom": {"expression": "daily"}}),
        ("yearly", {}),
    ],
)
def test_end_of_calendar_does_not_raise(recurrence_type: str, config: dict) -> None:
    anchor = datetime(9999, 12, 31, 12, tzinfo=UTC)
    assert compute_next_occurrence(anchor, recurrence_type, config) == datetime.max.replace(tzinfo=UTC)


def test_engine_does_not_mutate_config() -> None:
    config = {"weekly": {"interval": 1, "daysOfWeek": [5, 1]}}
    compute_next_occurrence(at(2024, 1, 3), "weekly", config)
    assert config == {"weekly": {"interval": 1, "daysOfWeek": [5, 1]}}


def test_every_supported_config_moves_strictly_forward() -> None:
    configs = [
        ("daily", {"daily": {"interval": 1}}),
        ("daily", {"daily": {"interval": 7}}),
        ("weekly", {"weekly": {"interval": 1, "daysOfWeek": [0]}}),
        ("weekly", {"weekly": {"interval": 3, "daysOfWeek": [0, 6]}}),
        ("weekly", {"weekly": {"interval": 1, "daysOfWeek": [0, 1, 2, 3, 4, 5, 6]}}),
        ("monthly", {"monthly": {"interval": 1, "dayOfMonth": 1}}),
        ("monthly", {"monthly": {"interval": 1, "dayOfMonth": 31}}),
        ("monthly", {"monthly": {"interval": 1, "weekOfMonth": -1, "dayOfWeek": 0}}),
        ("monthly", {"monthly": {"interval": 12, "weekOfMonth": 4, "dayOfWeek": 6}}),
        ("custom", {"custom": {"expression": "anything"}}),
    ]
    anchor = at(2023, 12, 25)
    for offset in range(0, 400, 17):
        current = anchor + timedelta(days=offset)
        for recurrence_type, config in configs:
            assert compute_next_occurrence(current, recurrence_type, config) > current


# --- parsing ---------------------------------------------------------------


def test_parse_accepts_bare_variant_and_models() -> None:
    bare = parse_recurrence_config("weekly", {"interval": 2, "daysOfWeek": [1]})
    assert isinstance(bare, WeeklyConfig)
    assert bare.interval == 2

    model = MonthlyConfig(interval=1, day_of_month=10)
    assert parse_recurrence_config(RecurrenceType.MONTHLY, model) is model


def test_parse_strict_raises_on_bad_config() -> None:
    with pytest.raises(RecurrenceConfigError) as exc_info:
        parse_recurrence_config("weekly", {"weekly": {"daysOfWeek": []}}, strict=True)
    assert exc_info.value.code == "INVALID_RECURRENCE_CONFIG"

    with pytest.raises(RecurrenceConfigError):
        parse_recurrence_config("hourly", {}, strict=True)


def test_parse_lenient_returns_none() -> None:
    assert parse_recurrence_config("weekly", {"weekly": {"daysOfWeek": [9]}}) is None


# --- presets, preview, description -----------------------------------------


def test_presets_are_valid_configs() -> None:
    for preset in RECURRENCE_PRESETS.values():
        parse_recurrence_config(preset.recurrence_type, preset.recurrence_config, strict=True)


def test_preview_starts_at_start_date() -> None:
    occurrences = preview_occurrences(at(2024, 1, 1), "weekly", RECURRENCE_PRESETS["every_weekday"].recurrence_config, 6)
    assert occurrences == [
        at(2024, 1, 1),
        at(2024, 1, 2),
        at(2024, 1, 3),
        at(2024, 1, 4),
        at(2024, 1, 5),
        at(2024, 1, 8),
    ]


def test_describe_recurrence() -> None:
    assert describe_recurrence("daily", {"daily": {"interval": 1}}) == "Every day"
    assert describe_recurrence("weekly", {"weekly": {"interval": 2, "daysOfWeek": [3, 1]}}) == "Every 2 weeks on Mon, Wed"
    assert describe_recurrence("monthly", {"monthly": {"interval": 1, "weekOfMonth": -1, "dayOfWeek": 5}}) == "Every month on the last Fri"
    assert describe_recurrence("monthly", {"monthly": {"interval": 3, "dayOfMonth": 15}}) == "Every 3 months on day 15"
    assert describe_recurrence("custom", {"custom": {"expression": "RRULE"}}) == "Custom: RRULE"
