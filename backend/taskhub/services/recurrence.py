"""Recurrence rule engine.

Pure date arithmetic for recurring task rules. Nothing here touches the
database or the clock: every function takes its anchor explicitly and
returns a new value.
"""

import calendar
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from taskhub.exceptions import RecurrenceConfigError
from taskhub.schemas.recurrence import (
    CONFIG_MODELS,
    LAST_WEEK,
    CustomConfig,
    DailyConfig,
    MonthlyConfig,
    RecurrenceConfig,
    RecurrenceType,
    WeeklyConfig,
)

logger = structlog.get_logger()

DateT = TypeVar("DateT", date, datetime)

DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
ORDINALS = {1: "first", 2: "second", 3: "third", 4: "fourth", 5: "fifth", LAST_WEEK: "last"}


def _coerce_type(recurrence_type: RecurrenceType | str) -> RecurrenceType | None:
    try:
        return RecurrenceType(recurrence_type)
    except ValueError:
        return None


def parse_recurrence_config(
    recurrence_type: RecurrenceType | str,
    raw: Any,
    *,
    strict: bool = False,
) -> DailyConfig | WeeklyConfig | MonthlyConfig | CustomConfig | None:
    """Resolve the config variant for a recurrence type.

    Accepts the tagged persisted shape (``{"weekly": {...}}``), the bare
    variant (``{"interval": 2, "daysOfWeek": [1]}``), a ``RecurrenceConfig``
    or an already-parsed variant model.

    In lenient mode malformed input yields ``None``; with ``strict=True`` a
    ``RecurrenceConfigError`` is raised instead.
    """
    rtype = _coerce_type(recurrence_type)
    if rtype is None:
        if strict:
            raise RecurrenceConfigError(str(recurrence_type), "unknown recurrence type")
        return None

    model = CONFIG_MODELS[rtype]
    if isinstance(raw, model):
        return raw

    payload = raw
    if isinstance(raw, RecurrenceConfig):
        payload = getattr(raw, rtype.value)
        if isinstance(payload, model):
            return payload
    elif isinstance(raw, Mapping) and rtype.value in raw:
        payload = raw[rtype.value]

    try:
        return model.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        if strict:
            raise RecurrenceConfigError(rtype.value, str(e)) from e
        return None


def ui_weekday(value: date) -> int:
    """Weekday in the UI convention (0 = Sunday)."""
    return (value.weekday() + 1) % 7


def add_months(value: DateT, months: int) -> DateT:
    """Shift by whole months, clamping the day to the target month's length."""
    total = value.year * 12 + (value.month - 1) + months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _next_daily(anchor: DateT, config: DailyConfig) -> DateT:
    return anchor + timedelta(days=config.interval)


def _next_weekly(anchor: DateT, config: WeeklyConfig) -> DateT:
    days = sorted(set(config.days_of_week))
    current = ui_weekday(anchor)

    later_this_week = [d for d in days if d > current]
    if later_this_week:
        return anchor + timedelta(days=later_this_week[0] - current)

    # Wrap to the first selected day, skipping interval - 1 whole weeks
    delta = (7 - current) + days[0] + 7 * (config.interval - 1)
    return anchor + timedelta(days=delta)


def _nth_weekday(month_start: DateT, week_of_month: int, day_of_week: int) -> DateT:
    days_in_month = calendar.monthrange(month_start.year, month_start.month)[1]

    if week_of_month == LAST_WEEK:
        last = month_start.replace(day=days_in_month)
        back = (ui_weekday(last) - day_of_week) % 7
        return last - timedelta(days=back)

    first_match = 1 + (day_of_week - ui_weekday(month_start)) % 7
    day = first_match + 7 * (week_of_month - 1)
    # A missing fifth occurrence falls back to the last one in the month
    while day > days_in_month:
        day -= 7
    return month_start.replace(day=day)


def _next_monthly(anchor: DateT, config: MonthlyConfig) -> DateT:
    target = add_months(anchor.replace(day=1), config.interval)

    if config.is_nth_weekday:
        return _nth_weekday(target, config.week_of_month, config.day_of_week)

    days_in_month = calendar.monthrange(target.year, target.month)[1]
    return target.replace(day=min(config.day_of_month, days_in_month))


def _one_day_after(anchor: DateT) -> DateT:
    """Step one day; at the end of the calendar, the last representable moment."""
    try:
        return anchor + timedelta(days=1)
    except OverflowError:
        if isinstance(anchor, datetime):
            return datetime.max.replace(tzinfo=anchor.tzinfo)
        return date.max


def compute_next_occurrence(
    anchor: DateT,
    recurrence_type: RecurrenceType | str,
    config: Any,
) -> DateT:
    """Return the next occurrence strictly after ``anchor``.

    Never raises on bad configuration: unknown types, malformed configs and
    custom expressions all step forward by one day. Custom expressions are
    stored but not evaluated.
    """
    fallback = _one_day_after(anchor)
    rtype = _coerce_type(recurrence_type)
    parsed = parse_recurrence_config(rtype, config) if rtype is not None else None

    if parsed is None:
        logger.warning(
            "recurrence_config_fallback",
            recurrence_type=str(recurrence_type),
        )
        return fallback

    try:
        if isinstance(parsed, DailyConfig):
            return _next_daily(anchor, parsed)
        if isinstance(parsed, WeeklyConfig):
            return _next_weekly(anchor, parsed)
        if isinstance(parsed, MonthlyConfig):
            return _next_monthly(anchor, parsed)
    except (ValueError, OverflowError) as e:
        logger.warning(
            "recurrence_calculation_failed",
            recurrence_type=rtype.value,
            error=str(e),
        )
        return fallback

    return fallback


# =========================================================================
# Presets and previews
# =========================================================================


@dataclass(frozen=True)
class RecurrencePreset:
    """A named recurrence offered as a one-click choice in the task form."""

    key: str
    label: str
    recurrence_type: RecurrenceType
    recurrence_config: dict[str, Any] = field(default_factory=dict)


RECURRENCE_PRESETS: dict[str, RecurrencePreset] = {
    preset.key: preset
    for preset in (
        RecurrencePreset("every_day", "Every day", RecurrenceType.DAILY,
                         {"daily": {"interval": 1}}),
        RecurrencePreset("every_weekday", "Every weekday", RecurrenceType.WEEKLY,
                         {"weekly": {"interval": 1, "daysOfWeek": [1, 2, 3, 4, 5]}}),
        RecurrencePreset("every_week", "Every week", RecurrenceType.WEEKLY,
                         {"weekly": {"interval": 1, "daysOfWeek": [1]}}),
        RecurrencePreset("every_two_weeks", "Every 2 weeks", RecurrenceType.WEEKLY,
                         {"weekly": {"interval": 2, "daysOfWeek": [1]}}),
        RecurrencePreset("every_month", "Every month", RecurrenceType.MONTHLY,
                         {"monthly": {"interval": 1, "dayOfMonth": 1}}),
        RecurrencePreset("first_monday_of_month", "First Monday of the month",
                         RecurrenceType.MONTHLY,
                         {"monthly": {"interval": 1, "weekOfMonth": 1, "dayOfWeek": 1}}),
        RecurrencePreset("last_friday_of_month", "Last Friday of the month",
                         RecurrenceType.MONTHLY,
                         {"monthly": {"interval": 1, "weekOfMonth": LAST_WEEK, "dayOfWeek": 5}}),
    )
}


def preview_occurrences(
    start: DateT,
    recurrence_type: RecurrenceType | str,
    config: Any,
    count: int = 5,
) -> list[DateT]:
    """List the first ``count`` occurrences beginning with ``start``."""
    occurrences: list[DateT] = []
    current = start
    for _ in range(max(count, 0)):
        occurrences.append(current)
        current = compute_next_occurrence(current, recurrence_type, config)
    return occurrences


def _every(interval: int, unit: str) -> str:
    return f"Every {unit}" if interval == 1 else f"Every {interval} {unit}s"


def describe_recurrence(recurrence_type: RecurrenceType | str, config: Any) -> str:
    """Human readable summary, e.g. ``"Every 2 weeks on Mon, Wed"``."""
    parsed = parse_recurrence_config(recurrence_type, config)

    if isinstance(parsed, DailyConfig):
        return _every(parsed.interval, "day")
    if isinstance(parsed, WeeklyConfig):
        names = ", ".join(DAY_NAMES[d] for d in sorted(set(parsed.days_of_week)))
        return f"{_every(parsed.interval, 'week')} on {names}"
    if isinstance(parsed, MonthlyConfig):
        prefix = _every(parsed.interval, "month")
        if parsed.is_nth_weekday:
            ordinal = ORDINALS[parsed.week_of_month]
            return f"{prefix} on the {ordinal} {DAY_NAMES[parsed.day_of_week]}"
        return f"{prefix} on day {parsed.day_of_month}"
    if isinstance(parsed, CustomConfig):
        return f"Custom: {parsed.expression}" if parsed.expression else "Custom"
    return "Every day"
