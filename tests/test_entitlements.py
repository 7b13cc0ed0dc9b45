from datetime import datetime, timedelta

import pytest

from reminder_app.models.user import User
from reminder_app.services.entitlements import EntitlementService, effective_plan, feature_enabled

NOW = datetime(2026, 3, 2, 9, 0, 0)


@pytest.mark.parametrize("plan_type,plan_status,trial_end,expected", [
    ("FREE", "active", None, "FREE"),
    ("PRO", "active", None, "PRO"),
    ("TEAM", "past_due", None, "TEAM"),
    ("PRO", "cancelled", None, "FREE"),
    ("FREE", "trial", NOW + timedelta(days=3), "PRO"),
    ("TEAM", "trial", NOW + timedelta(days=3), "TEAM"),
    ("PRO", "trial", NOW - timedelta(days=1), "FREE"),
])
def test_effective_plan(plan_type, plan_status, trial_end, expected):
    user = User(plan_type=plan_type, plan_status=plan_status, trial_end=trial_end)

    assert effective_plan(user, NOW) == expected


def test_free_plan_lacks_advanced_settings():
    user = User()

    assert feature_enabled(user, "smart_snooze", NOW) is True
    assert feature_enabled(user, "advanced_settings", NOW) is False
    assert feature_enabled(user, "no_such_feature", NOW) is False


def test_past_due_plan_is_degraded():
    user = User(plan_type="PRO", plan_status="past_due")

    assert feature_enabled(user, "weekly_digest", NOW) is True
    assert feature_enabled(user, "advanced_settings", NOW) is False
    assert feature_enabled(user, "tone_variants", NOW) is False


def test_service_reads_user_row(session, user):
    service = EntitlementService(session)

    assert service.is_feature_enabled(user.id, "smart_snooze") is True
    assert service.is_feature_enabled(user.id, "advanced_settings") is False
    assert service.is_feature_enabled("nobody", "smart_snooze") is False
