"""
Relationship tracking service.

Takes a message-sent / message-received event, resolves the counterpart
contacts, records one interaction per contact and re-scores each contact
from its full interaction history.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.features.relationships.domain.models import (
    DIRECTIONS,
    Contact,
    HealthScoreInputs,
    Interaction,
    InteractionAggregate,
    RelationshipEvent,
    SentimentResult,
    TrackingResult,
)
from app.features.relationships.ledger.aggregation import aggregate_interactions, detect_response
from app.features.relationships.ledger.repository import RelationshipStore, relationship_store
from app.features.relationships.scoring.service import (
    NO_CONTACT_DAYS,
    HealthScoreCalculator,
    days_since,
    generate_suggestion,
)
from app.features.relationships.sentiment.service import SentimentService, get_sentiment_service
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"[\w.-]+@[\w.-]+\.\w+")


def extract_contact_emails(raw: str | None) -> list[str]:
    """Lower-cased, de-duplicated addresses found in a raw header value, in order."""
    seen: dict[str, None] = {}
    for match in EMAIL_PATTERN.findall(raw or ""):
        seen.setdefault(match.lower(), None)
    return list(seen)


class RelationshipTrackingService:
    def __init__(
        self,
        store: RelationshipStore | None = None,
        sentiment: SentimentService | None = None,
        calculator: HealthScoreCalculator | None = None,
        response_window: timedelta | None = None,
    ):
        self.store = store or relationship_store
        self._sentiment = sentiment
        self.calculator = calculator or HealthScoreCalculator()
        self.response_window = response_window or timedelta(hours=settings.RESPONSE_WINDOW_HOURS)

    @property
    def sentiment(self) -> SentimentService:
        if self._sentiment is None:
            self._sentiment = get_sentiment_service()
        return self._sentiment

    def contact_emails_for(self, event: RelationshipEvent) -> list[str]:
        if event.direction not in DIRECTIONS:
            return []
        return extract_contact_emails(event.to_address if event.is_outbound else event.from_address)

    async def track_relationship(
        self, event: RelationshipEvent, user_id: str, now: datetime | None = None
    ) -> list[TrackingResult]:
        """
        Record an email event against every counterpart contact.

        Each contact is processed independently: a failure for one is logged
        and reported in its result while the others continue. Events with no
        recognizable direction or addresses produce no results.
        """
        contact_emails = self.contact_emails_for(event)
        if not contact_emails:
            logger.info(
                "No relationship contacts in event",
                user_id=user_id,
                direction=event.direction,
                email_id=event.email_id,
            )
            return []

        now = now or datetime.now(UTC)
        # Same text for every recipient, so one estimate serves the whole event
        sentiment = await self.sentiment.estimate(f"{event.subject} {event.body}")

        results: list[TrackingResult] = []
        for contact_email in contact_emails:
            try:
                contact = await self._track_contact(user_id, contact_email, event, sentiment, now)
            except Exception as e:
                logger.error(
                    "Relationship tracking failed for contact",
                    user_id=user_id,
                    contact_email=contact_email,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                results.append(
                    TrackingResult(
                        contact_email=contact_email,
                        success=False,
                        error=f"{type(e).__name__}: {e}",
                    )
                )
                continue

            results.append(
                TrackingResult(
                    contact_email=contact_email,
                    success=True,
                    health_score=contact.health_score,
                    contact_id=contact.id,
                )
            )

        logger.info(
            "Relationship event processed",
            user_id=user_id,
            direction=event.direction,
            contacts=len(results),
            failed=sum(1 for r in results if not r.success),
        )
        return results

    async def _track_contact(
        self,
        user_id: str,
        contact_email: str,
        event: RelationshipEvent,
        sentiment: SentimentResult,
        now: datetime,
    ) -> Contact:
        async with self.store.locked(user_id, contact_email) as store:
            contact = await store.find_contact(user_id, contact_email)
            if contact is None:
                contact = await store.create_contact(user_id, contact_email)

            history = await store.list_interactions(contact.id, limit=1)
            interaction = self._build_interaction(
                contact, event, sentiment, history[0] if history else None, now
            )
            await store.append_interaction(interaction)

            interactions = await store.list_interactions(contact.id)
            self._apply_aggregate(contact, aggregate_interactions(interactions), now)
            contact.last_email_id = event.email_id or contact.last_email_id
            await store.update_contact(contact)

        logger.debug(
            "Relationship contact updated",
            user_id=user_id,
            contact_id=contact.id,
            health_score=contact.health_score,
            sentiment_trend=contact.sentiment_trend,
        )
        return contact

    async def recompute_contact(
        self, user_id: str, contact_id: str, now: datetime | None = None
    ) -> Contact | None:
        """Re-score a stored contact from its existing history without adding an interaction."""
        contact = await self.store.get_contact(user_id, contact_id)
        if contact is None:
            return None

        now = now or datetime.now(UTC)
        async with self.store.locked(user_id, contact.email) as store:
            contact = await store.get_contact(user_id, contact_id)
            if contact is None:
                return None
            interactions = await store.list_interactions(contact.id)
            self._apply_aggregate(contact, aggregate_interactions(interactions), now)
            await store.update_contact(contact)
        return contact

    def _build_interaction(
        self,
        contact: Contact,
        event: RelationshipEvent,
        sentiment: SentimentResult,
        previous: Interaction | None,
        now: datetime,
    ) -> Interaction:
        if event.is_outbound:
            sent_at, received_at = event.sent_at or now, None
        else:
            sent_at, received_at = None, event.received_at or now
        occurred_at = sent_at or received_at

        was_response, response_minutes = detect_response(
            previous, event.direction, occurred_at, self.response_window
        )
        return Interaction(
            contact_id=contact.id,
            type="email",
            direction=event.direction,
            email_id=event.email_id,
            subject=event.subject,
            sent_at=sent_at,
            received_at=received_at,
            sentiment=sentiment.score,
            sentiment_label=sentiment.label,
            was_response=was_response,
            response_time_minutes=response_minutes,
        )

    def _apply_aggregate(
        self, contact: Contact, aggregate: InteractionAggregate, now: datetime
    ) -> None:
        inputs = HealthScoreInputs(
            last_contact_at=aggregate.last_contact_at,
            avg_response_time_minutes=aggregate.avg_response_time_minutes,
            emails_sent=aggregate.emails_sent,
            emails_received=aggregate.emails_received,
            avg_sentiment=aggregate.avg_sentiment,
            commitments_made=contact.commitments_made,
            commitments_kept=contact.commitments_kept,
        )
        breakdown = self.calculator.breakdown(inputs, now)
        health_score = self.calculator.total(breakdown)

        elapsed = days_since(aggregate.last_contact_at, now)
        suggestion = generate_suggestion(
            health_score,
            aggregate.last_contact_at,
            elapsed if elapsed is not None else NO_CONTACT_DAYS,
        )

        contact.health_score = health_score
        contact.emails_sent = aggregate.emails_sent
        contact.emails_received = aggregate.emails_received
        contact.total_emails = aggregate.total_emails
        contact.last_contact_at = aggregate.last_contact_at
        contact.recency_score = breakdown.recency
        contact.response_score = breakdown.response
        contact.initiation_score = breakdown.initiation
        contact.sentiment_score = breakdown.sentiment
        contact.commitment_score = breakdown.commitment
        contact.avg_sentiment = aggregate.avg_sentiment
        contact.sentiment_trend = aggregate.sentiment_trend
        contact.avg_response_time_minutes = aggregate.avg_response_time_minutes
        contact.suggested_action = suggestion
        contact.action_suggested_at = now if suggestion else None


relationship_tracking_service = RelationshipTrackingService()

