"""
Relationship health scoring.

Combines recency, response balance, initiation balance, sentiment and
commitment keeping into a 0-100 score, and maps a score to a suggested
next action. Everything here is pure; callers pass `now` to pin the clock.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime

from app.features.relationships.domain.models import HealthScoreInputs, ScoreBreakdown

SECONDS_PER_DAY = 86400
NO_CONTACT_DAYS = 999.0

RECENCY_MAX = 30.0
RESPONSE_MAX = 25.0
INITIATION_MAX = 20.0
SENTIMENT_MAX = 15.0
COMMITMENT_MAX = 10.0

# (max days since contact, points); first match wins
RECENCY_BUCKETS: tuple[tuple[float, float], ...] = (
    (1, 30.0),
    (7, 25.0),
    (14, 20.0),
    (30, 15.0),
    (60, 10.0),
    (90, 5.0),
)

SUGGESTION_THRIVING = "Relationship is thriving! Consider a personal check-in."
SUGGESTION_CALL = "Schedule a call or video chat"
SUGGESTION_CHECK_IN = "Send a quick check-in email"
SUGGESTION_RESPOND = "Respond to pending emails"
SUGGESTION_COMMITMENTS = "Follow up on your commitments"

HEALTHY_THRESHOLD = 80
COOLING_THRESHOLD = 60


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def days_since(moment: datetime | None, now: datetime | None = None) -> float | None:
    """Fractional days between moment and now; None without a moment, never negative."""
    if moment is None:
        return None
    now = now or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return max((now - moment).total_seconds() / SECONDS_PER_DAY, 0.0)


class HealthScoreCalculator:
    """Stateless calculator for the five health components."""

    def breakdown(self, inputs: HealthScoreInputs, now: datetime | None = None) -> ScoreBreakdown:
        return ScoreBreakdown(
            recency=self._recency(inputs, now),
            response=self._response_balance(inputs),
            initiation=self._initiation_balance(inputs),
            sentiment=self._sentiment(inputs),
            commitment=self._commitment(inputs),
        )

    def calculate(self, inputs: HealthScoreInputs, now: datetime | None = None) -> int:
        return self.total(self.breakdown(inputs, now))

    @staticmethod
    def total(breakdown: ScoreBreakdown) -> int:
        return min(100, max(0, round_half_up(breakdown.raw_total)))

    def _recency(self, inputs: HealthScoreInputs, now: datetime | None) -> float:
        elapsed = days_since(inputs.last_contact_at, now)
        if elapsed is None:
            return 0.0
        for max_days, points in RECENCY_BUCKETS:
            if elapsed <= max_days:
                return points
        return 0.0

    def _response_balance(self, inputs: HealthScoreInputs) -> float:
        total = inputs.emails_sent + inputs.emails_received
        if total <= 0:
            return 0.0
        received_ratio = inputs.emails_received / total
        if 0.3 <= received_ratio <= 0.7:
            return RESPONSE_MAX
        if 0.2 <= received_ratio <= 0.8:
            return 20.0
        return 10.0

    def _initiation_balance(self, inputs: HealthScoreInputs) -> float:
        # No emails at all contributes nothing rather than a 0/0 ratio
        total = inputs.emails_sent + inputs.emails_received
        if total <= 0:
            return 0.0
        sent_ratio = inputs.emails_sent / total
        if 0.3 <= sent_ratio <= 0.7:
            return INITIATION_MAX
        if 0.2 <= sent_ratio <= 0.8:
            return 15.0
        return 10.0

    def _sentiment(self, inputs: HealthScoreInputs) -> float:
        avg = max(-1.0, min(1.0, inputs.avg_sentiment or 0.0))
        return (avg + 1) / 2 * SENTIMENT_MAX

    def _commitment(self, inputs: HealthScoreInputs) -> float:
        if inputs.commitments_made <= 0:
            return 0.0
        rate = max(0.0, min(1.0, inputs.commitments_kept / inputs.commitments_made))
        return rate * COMMITMENT_MAX


health_score_calculator = HealthScoreCalculator()


def score_breakdown(inputs: HealthScoreInputs, now: datetime | None = None) -> ScoreBreakdown:
    return health_score_calculator.breakdown(inputs, now)


def calculate_health_score(inputs: HealthScoreInputs, now: datetime | None = None) -> int:
    """Return the integer health score in [0, 100] for the given inputs."""
    return health_score_calculator.calculate(inputs, now)


def generate_suggestion(
    score: int, last_contact_at: datetime | None, days_since_contact: float
) -> str | None:
    """
    Suggest a next action for a relationship.

    Strong relationships (>= 90) get an encouragement, good ones (75-89) need
    nothing, everything else is nudged based on how long it has been quiet.
    `last_contact_at` is accepted for callers that have it; the decision only
    depends on `days_since_contact`.
    """
    if score >= 90:
        return SUGGESTION_THRIVING
    if score >= 75:
        return None

    if days_since_contact > 60:
        return SUGGESTION_CALL
    if days_since_contact > 30:
        return SUGGESTION_CHECK_IN
    if days_since_contact > 14:
        return SUGGESTION_RESPOND
    return SUGGESTION_COMMITMENTS


def health_band(score: int) -> str:
    if score >= HEALTHY_THRESHOLD:
        return "healthy"
    if score >= COOLING_THRESHOLD:
        return "cooling"
    return "neglected"


HEALTH_BANDS: dict[str, tuple[int, int]] = {
    "healthy": (HEALTHY_THRESHOLD, 100),
    "cooling": (COOLING_THRESHOLD, HEALTHY_THRESHOLD - 1),
    "neglected": (0, COOLING_THRESHOLD - 1),
}
