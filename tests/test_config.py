# tests/test_config.py

from __future__ import annotations

import pytest
from pydantic import ValidationError

from taskhub.config import Settings


def test_allowed_origins_from_comma_separated_env(monkeypatch) -> None:
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")
    assert Settings().allowed_origins == ["https://a.example", "https://b.example"]


def test_allowed_origins_from_json_env(monkeypatch) -> None:
    monkeypatch.setenv("ALLOWED_ORIGINS", '["https://a.example"]')
    assert Settings().allowed_origins == ["https://a.example"]


def test_scheduler_secret_is_disabled_by_default(monkeypatch) -> None:
    monkeypatch.delenv("SCHEDULER_SECRET", raising=False)
    assert Settings(_env_file=None).scheduler_secret.get_secret_value() == ""


def test_cron_hour_is_bounded() -> None:
    with pytest.raises(ValidationError):
        Settings(recurring_tasks_cron_hour=24)


def test_batch_limit_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(recurring_batch_limit=0)
