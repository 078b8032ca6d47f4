"""
Interaction aggregation.

Rebuilds a contact's summary statistics from its complete interaction
history. Histories are expected most recent first, the order the store
returns them in.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from app.features.relationships.domain.models import (
    Interaction,
    InteractionAggregate,
    SentimentTrend,
)

TREND_WINDOW = 10
TREND_MIN_INTERACTIONS = 5
TREND_THRESHOLD = 0.1


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


def _mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def sentiment_trend(interactions: Sequence[Interaction], avg_sentiment: float) -> SentimentTrend:
    """Compare the recent window's mean sentiment against the all-time mean."""
    recent = interactions[:TREND_WINDOW]
    if len(recent) < TREND_MIN_INTERACTIONS:
        return "stable"

    recent_avg = _mean([i.sentiment for i in recent if i.sentiment is not None]) or 0.0
    if recent_avg > avg_sentiment + TREND_THRESHOLD:
        return "improving"
    if recent_avg < avg_sentiment - TREND_THRESHOLD:
        return "declining"
    return "stable"


def aggregate_interactions(interactions: Sequence[Interaction]) -> InteractionAggregate:
    """Derive counts, last contact, sentiment and response-time stats for one contact."""
    emails = [i for i in interactions if i.type == "email"]
    emails_sent = sum(1 for i in emails if i.direction == "outbound")
    emails_received = sum(1 for i in emails if i.direction == "inbound")

    last_contact_at = next(
        (i.occurred_at for i in interactions if i.occurred_at is not None), None
    )

    avg_sentiment = _mean([i.sentiment for i in interactions if i.sentiment is not None]) or 0.0
    avg_response_time = _mean(
        [
            i.response_time_minutes
            for i in interactions
            if i.was_response and i.response_time_minutes is not None
        ]
    )

    return InteractionAggregate(
        emails_sent=emails_sent,
        emails_received=emails_received,
        last_contact_at=last_contact_at,
        avg_sentiment=avg_sentiment,
        avg_response_time_minutes=avg_response_time,
        sentiment_trend=sentiment_trend(interactions, avg_sentiment),
        interaction_count=len(interactions),
    )


def detect_response(
    previous: Interaction | None,
    direction: str,
    occurred_at: datetime,
    window: timedelta,
) -> tuple[bool, float | None]:
    """
    Decide whether a new interaction answers the previous one.

    It does when the direction flips and the gap is within `window`; the gap
    is returned in minutes.
    """
    if previous is None or previous.direction == direction:
        return False, None
    previous_at = previous.occurred_at
    if previous_at is None:
        return False, None
    gap = _as_utc(occurred_at) - _as_utc(previous_at)
    if gap < timedelta(0) or gap > window:
        return False, None
    return True, round(gap.total_seconds() / 60, 2)
