import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from app.features.relationships.domain.models import RelationshipEvent
from app.features.relationships.scoring.service import SUGGESTION_THRIVING
from app.features.relationships.tracking.service import (
    RelationshipTrackingService,
    extract_contact_emails,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _event(direction="outbound", to="alice@example.com", frm="me@example.com", **kwargs):
    values = {
        "email_id": "msg-1",
        "from_address": frm,
        "to_address": to,
        "subject": "Project update",
        "body": "Thanks for the great work",
        "direction": direction,
    }
    values.update(kwargs)
    return RelationshipEvent(**values)


def _service(store, sentiment):
    return RelationshipTrackingService(
        store=store,
        sentiment=sentiment,
        response_window=timedelta(hours=48),
    )


def test_extract_contact_emails():
    raw = "Alice <Alice@Example.com>, bob@example.org; alice@example.com, not-an-address"
    assert extract_contact_emails(raw) == ["alice@example.com", "bob@example.org"]
    assert extract_contact_emails("") == []
    assert extract_contact_emails(None) == []


@pytest.mark.asyncio
async def test_new_contact_is_created_and_scored(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)

    results = await service.track_relationship(_event(sent_at=NOW), "user-1", now=NOW)

    assert len(results) == 1
    result = results[0]
    assert result.success is True
    assert result.contact_email == "alice@example.com"

    contact = fake_store.contacts[result.contact_id]
    assert contact.user_id == "user-1"
    assert contact.emails_sent == 1
    assert contact.emails_received == 0
    assert contact.total_emails == 1
    assert contact.last_contact_at == NOW
    assert contact.last_email_id == "msg-1"
    assert contact.avg_sentiment == pytest.approx(0.8)
    # 30 + 10 + 10 + 13.5 + 0
    assert contact.health_score == 64 == result.health_score
    assert contact.recency_score == 30.0
    assert contact.sentiment_score == pytest.approx(13.5)
    assert contact.suggested_action is not None
    assert contact.action_suggested_at == NOW

    interaction = fake_store.interactions[0]
    assert interaction.direction == "outbound"
    assert interaction.sent_at == NOW
    assert interaction.received_at is None
    assert interaction.sentiment == pytest.approx(0.8)
    assert interaction.sentiment_label == "positive"
    assert stub_sentiment.calls == ["Project update Thanks for the great work"]


@pytest.mark.asyncio
async def test_inbound_uses_sender_and_defaults_timestamp(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)

    results = await service.track_relationship(
        _event("inbound", to="me@example.com", frm="Bob <bob@example.com>"), "user-1", now=NOW
    )

    assert [r.contact_email for r in results] == ["bob@example.com"]
    interaction = fake_store.interactions[0]
    assert interaction.received_at == NOW
    assert interaction.sent_at is None


@pytest.mark.asyncio
async def test_balanced_recent_history_needs_no_action(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)

    await service.track_relationship(
        _event("inbound", to="me@example.com", frm="alice@example.com", received_at=NOW - timedelta(hours=3)),
        "user-1",
        now=NOW,
    )
    results = await service.track_relationship(
        _event(sent_at=NOW - timedelta(hours=1)), "user-1", now=NOW
    )

    contact = fake_store.contacts[results[0].contact_id]
    assert len(fake_store.contacts) == 1
    assert contact.emails_sent == 1
    assert contact.emails_received == 1
    assert contact.last_contact_at == NOW - timedelta(hours=1)
    # 30 + 25 + 20 + 13.5 + 0
    assert contact.health_score == 89
    assert contact.suggested_action is None
    assert contact.action_suggested_at is None

    reply = fake_store.interactions[-1]
    assert reply.was_response is True
    assert reply.response_time_minutes == pytest.approx(120.0)
    assert contact.avg_response_time_minutes == pytest.approx(120.0)


@pytest.mark.asyncio
async def test_all_recipients_tracked_with_one_sentiment_call(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)

    results = await service.track_relationship(
        _event(to="alice@example.com, bob@example.com"), "user-1", now=NOW
    )

    assert [r.contact_email for r in results] == ["alice@example.com", "bob@example.com"]
    assert all(r.success for r in results)
    assert len(fake_store.contacts) == 2
    assert len(stub_sentiment.calls) == 1


@pytest.mark.asyncio
async def test_failure_for_one_contact_does_not_stop_others(make_store, stub_sentiment):
    store = make_store(fail_update_for={"alice@example.com"})
    service = _service(store, stub_sentiment)

    results = await service.track_relationship(
        _event(to="alice@example.com, bob@example.com"), "user-1", now=NOW
    )

    alice, bob = results
    assert alice.success is False
    assert "update failed" in alice.error
    assert alice.health_score is None
    assert bob.success is True
    assert bob.health_score is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event",
    [
        _event(direction="sideways"),
        _event(direction=None),
        _event(to=""),
        _event(to="undisclosed-recipients:;"),
    ],
)
async def test_malformed_events_produce_no_results(fake_store, stub_sentiment, event):
    service = _service(fake_store, stub_sentiment)

    assert await service.track_relationship(event, "user-1", now=NOW) == []
    assert fake_store.contacts == {}
    assert stub_sentiment.calls == []


@pytest.mark.asyncio
async def test_concurrent_events_for_same_contact_are_serialized(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)
    events = [_event(email_id=f"msg-{n}", sent_at=NOW - timedelta(minutes=n)) for n in range(5)]

    await asyncio.gather(*(service.track_relationship(e, "user-1", now=NOW) for e in events))

    assert len(fake_store.contacts) == 1
    contact = next(iter(fake_store.contacts.values()))
    assert contact.emails_sent == 5
    assert contact.total_emails == 5
    assert len(fake_store.interactions) == 5
    assert fake_store.lock_calls == [("user-1", "alice@example.com")] * 5


@pytest.mark.asyncio
async def test_contacts_are_scoped_per_user(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)

    await service.track_relationship(_event(), "user-1", now=NOW)
    await service.track_relationship(_event(), "user-2", now=NOW)

    assert sorted(c.user_id for c in fake_store.contacts.values()) == ["user-1", "user-2"]


@pytest.mark.asyncio
async def test_recompute_rescores_from_history(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)
    results = await service.track_relationship(_event(sent_at=NOW), "user-1", now=NOW)
    contact_id = results[0].contact_id

    later = NOW + timedelta(days=45)
    contact = await service.recompute_contact("user-1", contact_id, now=later)

    assert contact.recency_score == 10.0
    # 10 + 10 + 10 + 13.5 + 0
    assert contact.health_score == 44
    assert contact.total_emails == 1
    assert len(fake_store.interactions) == 1
    assert fake_store.contacts[contact_id].health_score == 44


@pytest.mark.asyncio
async def test_recompute_unknown_contact(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)
    assert await service.recompute_contact("user-1", "missing") is None


@pytest.mark.asyncio
async def test_thriving_suggestion_sets_timestamp(fake_store, make_sentiment):
    service = _service(fake_store, make_sentiment(score=1.0, label="positive"))
    await service.track_relationship(
        _event("inbound", to="me@example.com", frm="alice@example.com", received_at=NOW), "user-1", now=NOW
    )
    contact = next(iter(fake_store.contacts.values()))
    contact.commitments_made = 2
    contact.commitments_kept = 2

    results = await service.track_relationship(_event(sent_at=NOW), "user-1", now=NOW)

    contact = fake_store.contacts[results[0].contact_id]
    assert contact.health_score == 100
    assert contact.suggested_action == SUGGESTION_THRIVING
    assert contact.action_suggested_at == NOW


@pytest.mark.asyncio
async def test_recompute_is_idempotent(fake_store, stub_sentiment):
    service = _service(fake_store, stub_sentiment)
    inbound = _event("inbound", to="me@example.com", frm="alice@example.com")
    await service.track_relationship(inbound, "user-1", now=NOW)
    results = await service.track_relationship(_event(), "user-1", now=NOW)
    contact_id = results[0].contact_id

    first = await service.recompute_contact("user-1", contact_id, now=NOW)
    second = await service.recompute_contact("user-1", contact_id, now=NOW)

    assert first.health_score == second.health_score == results[0].health_score
    assert first.avg_sentiment == second.avg_sentiment
    assert first.sentiment_trend == second.sentiment_trend
    assert len(fake_store.interactions) == 2
