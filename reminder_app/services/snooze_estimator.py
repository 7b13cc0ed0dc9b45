"""
Smart Snooze Estimator

Suggests a snooze duration from the user's recent snooze history.

Pure read-and-compute: it never writes, is safe to call redundantly, and
never raises to its caller. When the plan or the user's profile turns the
feature off it returns None.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from reminder_app.models.snooze_history import SnoozeHistory
from reminder_app.services.entitlements import EntitlementService
from reminder_app.utils.time_utils import to_local

logger = logging.getLogger(__name__)

DEFAULT_MINUTES = 10
MIN_SAMPLES = 3
HIGH_CONFIDENCE_SAMPLES = 10
WINDOW_DAYS = 30
HISTORY_LIMIT = 50
RECENCY_HALF_LIFE_DAYS = 7
TIME_OF_DAY_SPAN_HOURS = 2
MIN_MINUTES = 5
MAX_MINUTES = 120


@dataclass
class SnoozeSuggestion:
    suggested_minutes: int
    confidence: str  # low, medium, high
    reason: str  # insufficient_history, based_on_history, history_unavailable
    basis: str = "default"  # default, history, reminder, time_of_day, day_of_week
    sample_size: int = 0

    def to_dict(self):
        return asdict(self)


def default_suggestion(reason: str = "insufficient_history", sample_size: int = 0) -> SnoozeSuggestion:
    return SnoozeSuggestion(
        suggested_minutes=DEFAULT_MINUTES,
        confidence="low",
        reason=reason,
        basis="default",
        sample_size=sample_size,
    )


def weighted_median(samples: Sequence[Tuple[float, float]]) -> float:
    """Median of (value, weight) pairs: the smallest value covering half the total weight."""
    ordered = sorted(samples)
    total = sum(weight for _, weight in ordered)
    running = 0.0
    for value, weight in ordered:
        running += weight
        if running >= total / 2:
            return value
    return ordered[-1][0]


def round_minutes(minutes: float) -> int:
    """Clamp to [5, 120] and round half-up to the nearest 5."""
    clamped = max(MIN_MINUTES, min(MAX_MINUTES, minutes))
    return int(clamped / 5 + 0.5) * 5


def _hour_distance(a: int, b: int) -> int:
    diff = abs(a - b) % 24
    return min(diff, 24 - diff)


class SmartSnoozeEstimator:
    """Computes {suggested_minutes, confidence, reason} for a user (and optionally one reminder)."""

    def __init__(
        self,
        session: Session,
        entitlements: EntitlementService,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.entitlements = entitlements
        self._now = now or datetime.utcnow

    def _load_history(self, user_id: str, since: datetime) -> List[SnoozeHistory]:
        statement = (
            select(SnoozeHistory)
            .where(SnoozeHistory.user_id == user_id)
            .where(SnoozeHistory.created_at >= since)
            .order_by(col(SnoozeHistory.created_at).desc())
            .limit(HISTORY_LIMIT)
        )
        return list(self.session.exec(statement).all())

    def _weight(self, entry: SnoozeHistory, now: datetime) -> float:
        age_days = max((now - entry.created_at).total_seconds(), 0) / 86400
        return 0.5 ** (age_days / RECENCY_HALF_LIFE_DAYS)

    def _estimate(self, entries: List[SnoozeHistory], basis: str, now: datetime) -> SnoozeSuggestion:
        median = weighted_median([(e.duration_minutes, self._weight(e, now)) for e in entries])
        return SnoozeSuggestion(
            suggested_minutes=round_minutes(median),
            confidence="high" if len(entries) >= HIGH_CONFIDENCE_SAMPLES else "medium",
            reason="based_on_history",
            basis=basis,
            sample_size=len(entries),
        )

    def suggest(self, user_id: str, reminder_id: Optional[str] = None) -> Optional[SnoozeSuggestion]:
        """
        Suggest a snooze duration.

        Args:
            user_id: Owner whose history is scanned
            reminder_id: Prefer this reminder's own history when it is large enough

        Returns:
            A SnoozeSuggestion, or None when smart snooze is disabled for the user
        """
        now = self._now()
        try:
            if not self.entitlements.is_feature_enabled(user_id, "smart_snooze"):
                return None
            user = self.entitlements.get_user(user_id)
            if user is not None and not user.smart_snooze_enabled:
                return None
            history = self._load_history(user_id, now - timedelta(days=WINDOW_DAYS))
        except SQLAlchemyError:
            logger.exception(f"Snooze history unavailable for user {user_id}")
            return default_suggestion("history_unavailable")

        if reminder_id:
            own = [e for e in history if e.reminder_id == reminder_id]
            if len(own) >= MIN_SAMPLES:
                return self._estimate(own, "reminder", now)

        if len(history) < MIN_SAMPLES:
            return default_suggestion(sample_size=len(history))

        local_now = to_local(now, user.timezone if user else "UTC")

        same_day = [e for e in history if e.day_of_week == local_now.weekday()]
        if len(same_day) > 2:
            return self._estimate(same_day, "day_of_week", now)

        same_hours = [
            e for e in history
            if _hour_distance(e.hour_of_day, local_now.hour) <= TIME_OF_DAY_SPAN_HOURS
        ]
        if len(same_hours) >= MIN_SAMPLES:
            return self._estimate(same_hours, "time_of_day", now)

        return self._estimate(history, "history", now)
