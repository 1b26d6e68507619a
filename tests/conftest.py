# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from taskhub.services.recurring_task import DueRule


@pytest.fixture()
def make_rule():
    """Factory for due rules with sensible defaults."""

    def _make(**overrides) -> DueRule:
        values = dict(
            id="rule-1",
            workspace_id="ws-1",
            title="Check venue bookings",
            recurrence_type="daily",
            recurrence_config={"daily": {"interval": 1}},
            next_occurrence=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        values.update(overrides)
        return DueRule(**values)

    return _make
