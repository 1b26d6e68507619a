"""Recurrence rule configuration schemas.

Configs are persisted as JSON in the same camelCase shape the workspace UI
submits, e.g. ``{"weekly": {"interval": 1, "daysOfWeek": [1, 3, 5]}}``.
Weekday numbers follow the UI convention: 0 = Sunday ... 6 = Saturday.
"""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

Weekday = Annotated[int, Field(ge=0, le=6)]

# Sentinel week-of-month for "last <weekday> of the month"
LAST_WEEK = -1


class RecurrenceType(str, Enum):
    """Supported recurrence types."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class DailyConfig(_ConfigModel):
    """Every ``interval`` days."""

    interval: int = Field(default=1, ge=1)


class WeeklyConfig(_ConfigModel):
    """Every ``interval`` weeks on the given weekdays."""

    interval: int = Field(default=1, ge=1)
    days_of_week: list[Weekday] = Field(..., min_length=1)


class MonthlyConfig(_ConfigModel):
    """Every ``interval`` months, on a fixed day or on the Nth weekday."""

    interval: int = Field(default=1, ge=1)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    week_of_month: int | None = Field(default=None, ge=-1, le=5)
    day_of_week: Weekday | None = None

    @model_validator(mode="after")
    def check_shape(self) -> "MonthlyConfig":
        if self.day_of_month is not None:
            return self
        if self.week_of_month is None or self.day_of_week is None:
            raise ValueError(
                "monthly config needs dayOfMonth or both weekOfMonth and dayOfWeek"
            )
        if self.week_of_month == 0:
            raise ValueError("weekOfMonth must be 1-5 or -1 for the last week")
        return self

    @property
    def is_nth_weekday(self) -> bool:
        return self.day_of_month is None


class CustomConfig(_ConfigModel):
    """Opaque custom expression; not evaluated."""

    expression: str = ""


class RecurrenceConfig(_ConfigModel):
    """Tagged wrapper as persisted on the rule: one key per recurrence type."""

    daily: DailyConfig | None = None
    weekly: WeeklyConfig | None = None
    monthly: MonthlyConfig | None = None
    custom: CustomConfig | None = None


CONFIG_MODELS: dict[RecurrenceType, type[_ConfigModel]] = {
    RecurrenceType.DAILY: DailyConfig,
    RecurrenceType.WEEKLY: WeeklyConfig,
    RecurrenceType.MONTHLY: MonthlyConfig,
    RecurrenceType.CUSTOM: CustomConfig,
}
