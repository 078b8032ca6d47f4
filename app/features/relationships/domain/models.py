"""
Domain models for the relationships feature.

Plain dataclasses shared by the repository, the scoring code and the API
layer. Contacts and interactions mirror the relationship_contacts and
relationship_interactions tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Direction = Literal["inbound", "outbound"]
SentimentLabel = Literal["positive", "negative", "neutral"]
SentimentTrend = Literal["improving", "declining", "stable"]

DIRECTIONS: tuple[str, ...] = ("inbound", "outbound")


@dataclass(slots=True)
class Contact:
    """A counterpart address tracked per user; one row per (user_id, email)."""

    id: str
    user_id: str
    email: str
    display_name: str | None = None
    health_score: int = 0
    emails_sent: int = 0
    emails_received: int = 0
    total_emails: int = 0
    last_contact_at: datetime | None = None
    recency_score: float = 0.0
    response_score: float = 0.0
    initiation_score: float = 0.0
    sentiment_score: float = 0.0
    commitment_score: float = 0.0
    avg_sentiment: float = 0.0
    sentiment_trend: SentimentTrend = "stable"
    avg_response_time_minutes: float | None = None
    commitments_made: int = 0
    commitments_kept: int = 0
    suggested_action: str | None = None
    action_suggested_at: datetime | None = None
    last_email_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class Interaction:
    """One recorded message event between the user and a contact. Immutable once stored."""

    contact_id: str
    direction: Direction
    subject: str
    sentiment: float | None
    sentiment_label: SentimentLabel | None
    type: str = "email"
    email_id: str | None = None
    sent_at: datetime | None = None
    received_at: datetime | None = None
    was_response: bool = False
    response_time_minutes: float | None = None
    id: str | None = None
    created_at: datetime | None = None

    @property
    def occurred_at(self) -> datetime | None:
        return self.sent_at or self.received_at


@dataclass(slots=True)
class RelationshipEvent:
    """A message-sent or message-received event as it arrives at the boundary."""

    email_id: str | None
    from_address: str
    to_address: str
    subject: str
    body: str
    direction: str | None
    sent_at: datetime | None = None
    received_at: datetime | None = None

    @property
    def is_outbound(self) -> bool:
        return self.direction == "outbound"


@dataclass(slots=True, frozen=True)
class SentimentResult:
    score: float
    label: SentimentLabel
    source: str = "keyword"  # "remote", "keyword" or "fallback"


@dataclass(slots=True)
class HealthScoreInputs:
    last_contact_at: datetime | None
    avg_response_time_minutes: float | None
    emails_sent: int
    emails_received: int
    avg_sentiment: float
    commitments_made: int = 0
    commitments_kept: int = 0


@dataclass(slots=True, frozen=True)
class ScoreBreakdown:
    recency: float
    response: float
    initiation: float
    sentiment: float
    commitment: float

    @property
    def raw_total(self) -> float:
        return self.recency + self.response + self.initiation + self.sentiment + self.commitment

    def as_dict(self) -> dict[str, float]:
        return {
            "recency": self.recency,
            "response": self.response,
            "initiation": self.initiation,
            "sentiment": self.sentiment,
            "commitment": self.commitment,
        }


@dataclass(slots=True)
class InteractionAggregate:
    emails_sent: int = 0
    emails_received: int = 0
    last_contact_at: datetime | None = None
    avg_sentiment: float = 0.0
    avg_response_time_minutes: float | None = None
    sentiment_trend: SentimentTrend = "stable"
    interaction_count: int = 0

    @property
    def total_emails(self) -> int:
        return self.emails_sent + self.emails_received


@dataclass(slots=True)
class TrackingResult:
    contact_email: str
    success: bool
    health_score: int | None = None
    error: str | None = None
    contact_id: str | None = None
