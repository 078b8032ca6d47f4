from datetime import UTC, datetime, timedelta

import pytest

from app.features.relationships.domain.models import Interaction
from app.features.relationships.ledger.aggregation import (
    aggregate_interactions,
    detect_response,
    sentiment_trend,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
WINDOW = timedelta(hours=48)


def _interaction(direction="inbound", sentiment=0.0, at=None, **kwargs) -> Interaction:
    at = at or NOW
    return Interaction(
        contact_id="contact-1",
        direction=direction,
        subject="Hello",
        sentiment=sentiment,
        sentiment_label="neutral",
        sent_at=at if direction == "outbound" else None,
        received_at=at if direction == "inbound" else None,
        **kwargs,
    )


def test_empty_history():
    aggregate = aggregate_interactions([])
    assert aggregate.emails_sent == 0
    assert aggregate.emails_received == 0
    assert aggregate.total_emails == 0
    assert aggregate.last_contact_at is None
    assert aggregate.avg_sentiment == 0.0
    assert aggregate.sentiment_trend == "stable"
    assert aggregate.avg_response_time_minutes is None


def test_counts_and_last_contact():
    history = [
        _interaction("outbound", 0.4, NOW - timedelta(days=1)),
        _interaction("inbound", 0.2, NOW - timedelta(days=3)),
        _interaction("inbound", 0.0, NOW - timedelta(days=9)),
    ]

    aggregate = aggregate_interactions(history)

    assert aggregate.emails_sent == 1
    assert aggregate.emails_received == 2
    assert aggregate.total_emails == 3
    assert aggregate.interaction_count == 3
    assert aggregate.last_contact_at == NOW - timedelta(days=1)
    assert aggregate.avg_sentiment == pytest.approx(0.2)


def test_non_email_interactions_are_not_counted_as_emails():
    history = [_interaction("outbound", 0.5, type="meeting"), _interaction("inbound", 0.5)]
    aggregate = aggregate_interactions(history)
    assert aggregate.emails_sent == 0
    assert aggregate.emails_received == 1
    assert aggregate.interaction_count == 2


def test_missing_sentiment_is_skipped_in_average():
    history = [_interaction(sentiment=None), _interaction(sentiment=0.6)]
    assert aggregate_interactions(history).avg_sentiment == pytest.approx(0.6)


def test_aggregation_is_repeatable():
    history = [_interaction("outbound", 0.3), _interaction("inbound", -0.1)]
    assert aggregate_interactions(history) == aggregate_interactions(history)


def test_trend_needs_minimum_history():
    history = [_interaction(sentiment=1.0) for _ in range(4)]
    assert sentiment_trend(history, 0.0) == "stable"


def test_trend_improving():
    # 10 recent positive messages after 10 older negative ones
    history = [_interaction(sentiment=0.8) for _ in range(10)]
    history += [_interaction(sentiment=-0.8) for _ in range(10)]
    aggregate = aggregate_interactions(history)
    assert aggregate.avg_sentiment == pytest.approx(0.0)
    assert aggregate.sentiment_trend == "improving"


def test_trend_declining():
    history = [_interaction(sentiment=-0.5) for _ in range(5)]
    history += [_interaction(sentiment=0.5) for _ in range(15)]
    assert aggregate_interactions(history).sentiment_trend == "declining"


def test_trend_within_threshold_is_stable():
    history = [_interaction(sentiment=0.3) for _ in range(10)]
    history += [_interaction(sentiment=0.2) for _ in range(10)]
    # recent 0.3 vs overall 0.25
    assert aggregate_interactions(history).sentiment_trend == "stable"


def test_response_time_average():
    history = [
        _interaction("outbound", was_response=True, response_time_minutes=30.0),
        _interaction("inbound", was_response=True, response_time_minutes=90.0),
        _interaction("outbound"),
    ]
    assert aggregate_interactions(history).avg_response_time_minutes == pytest.approx(60.0)


def test_detect_response_on_direction_flip():
    previous = _interaction("inbound", at=NOW - timedelta(hours=2))
    was_response, minutes = detect_response(previous, "outbound", NOW, WINDOW)
    assert was_response is True
    assert minutes == pytest.approx(120.0)


def test_same_direction_is_not_a_response():
    previous = _interaction("outbound", at=NOW - timedelta(hours=2))
    assert detect_response(previous, "outbound", NOW, WINDOW) == (False, None)


def test_reply_outside_window_is_not_a_response():
    previous = _interaction("inbound", at=NOW - timedelta(hours=49))
    assert detect_response(previous, "outbound", NOW, WINDOW) == (False, None)


def test_first_interaction_is_not_a_response():
    assert detect_response(None, "inbound", NOW, WINDOW) == (False, None)


def test_detect_response_mixes_naive_and_aware():
    previous = _interaction("inbound", at=(NOW - timedelta(minutes=15)).replace(tzinfo=None))
    was_response, minutes = detect_response(previous, "outbound", NOW, WINDOW)
    assert was_response is True
    assert minutes == pytest.approx(15.0)
