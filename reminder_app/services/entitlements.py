"""Plan-based feature entitlements (read-only lookups)."""
import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from sqlmodel import Session, select

from reminder_app.models.user import User

logger = logging.getLogger(__name__)

_ALL_FEATURES = frozenset({
    "smart_snooze",
    "contacts",
    "weekly_digest",
    "trust_audit_ui",
    "advanced_settings",
    "tone_variants",
    "reminder_volume",
})

# Features each effective plan turns on
FEATURE_MATRIX: Dict[str, FrozenSet[str]] = {
    "FREE": _ALL_FEATURES - {"advanced_settings"},
    "PRO": _ALL_FEATURES,
    "TEAM": _ALL_FEATURES,
}

# Features withheld while a paid subscription is past due
DEGRADED_RESTRICTED = ("advanced_settings", "tone_variants")


def effective_plan(user: User, now: Optional[datetime] = None) -> str:
    """PRO/TEAM while an active trial or a paid subscription is in force, else FREE."""
    now = now or datetime.utcnow()
    if user.plan_status == "trial" and user.trial_end is not None and user.trial_end > now:
        return "TEAM" if user.plan_type == "TEAM" else "PRO"
    if user.plan_type in ("PRO", "TEAM") and user.plan_status in ("active", "past_due"):
        return user.plan_type
    return "FREE"


def feature_enabled(user: User, feature: str, now: Optional[datetime] = None) -> bool:
    if user.plan_status == "past_due" and feature in DEGRADED_RESTRICTED:
        return False
    return feature in FEATURE_MATRIX[effective_plan(user, now)]


class EntitlementService:
    """Answers isFeatureEnabled(user, feature) from the user's plan fields."""

    def __init__(self, session: Session):
        self.session = session

    def get_user(self, user_id: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.id == user_id)).first()

    def is_feature_enabled(self, user_id: str, feature: str) -> bool:
        user = self.get_user(user_id)
        if user is None:
            logger.info(f"Entitlement lookup for unknown user {user_id}; treating '{feature}' as disabled")
            return False
        return feature_enabled(user, feature)
