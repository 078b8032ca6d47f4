"""
Request and response models for the relationships API.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.relationships.domain.models import (
    Contact,
    Interaction,
    RelationshipEvent,
    TrackingResult,
)
from app.features.relationships.scoring.service import health_band


class RelationshipEventRequest(BaseModel):
    """A message event to record; camelCase keys match the mail client payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email_id: str | None = Field(default=None, alias="emailId")
    from_address: str = Field(default="", alias="from")
    to_address: str = Field(default="", alias="to")
    subject: str = Field(default="")
    body: str = Field(default="")
    direction: str | None = Field(default=None, description="inbound or outbound")
    sent_at: datetime | None = Field(default=None, alias="sentAt")
    received_at: datetime | None = Field(default=None, alias="receivedAt")

    @field_validator("sent_at", "received_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_event(self) -> RelationshipEvent:
        return RelationshipEvent(
            email_id=self.email_id,
            from_address=self.from_address,
            to_address=self.to_address,
            subject=self.subject,
            body=self.body,
            direction=self.direction,
            sent_at=self.sent_at,
            received_at=self.received_at,
        )


class TrackingResultResponse(BaseModel):
    """Per-contact outcome, serialized with the same camelCase keys the event uses."""

    model_config = ConfigDict(populate_by_name=True)

    contact_email: str = Field(alias="contactEmail")
    success: bool
    health_score: int | None = Field(default=None, alias="healthScore")
    contact_id: str | None = Field(default=None, alias="contactId")
    error: str | None = None

    @classmethod
    def from_result(cls, result: TrackingResult) -> "TrackingResultResponse":
        return cls(
            contact_email=result.contact_email,
            success=result.success,
            health_score=result.health_score,
            contact_id=result.contact_id,
            error=result.error,
        )


class TrackRelationshipResponse(BaseModel):
    results: list[TrackingResultResponse]


class ComponentScores(BaseModel):
    recency: float
    response: float
    initiation: float
    sentiment: float
    commitment: float


class RelationshipResponse(BaseModel):
    id: str
    email: str
    display_name: str | None = None
    health_score: int
    health_band: str
    emails_sent: int
    emails_received: int
    total_emails: int
    last_contact_at: datetime | None = None
    component_scores: ComponentScores
    avg_sentiment: float
    sentiment_trend: str
    avg_response_time_minutes: float | None = None
    suggested_action: str | None = None
    action_suggested_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_contact(cls, contact: Contact) -> "RelationshipResponse":
        return cls(
            id=contact.id,
            email=contact.email,
            display_name=contact.display_name,
            health_score=contact.health_score,
            health_band=health_band(contact.health_score),
            emails_sent=contact.emails_sent,
            emails_received=contact.emails_received,
            total_emails=contact.total_emails,
            last_contact_at=contact.last_contact_at,
            component_scores=ComponentScores(
                recency=contact.recency_score,
                response=contact.response_score,
                initiation=contact.initiation_score,
                sentiment=contact.sentiment_score,
                commitment=contact.commitment_score,
            ),
            avg_sentiment=contact.avg_sentiment,
            sentiment_trend=contact.sentiment_trend,
            avg_response_time_minutes=contact.avg_response_time_minutes,
            suggested_action=contact.suggested_action,
            action_suggested_at=contact.action_suggested_at,
            updated_at=contact.updated_at,
        )


class RelationshipListResponse(BaseModel):
    relationships: list[RelationshipResponse]


class InteractionResponse(BaseModel):
    id: str | None = None
    direction: str
    subject: str
    email_id: str | None = None
    sent_at: datetime | None = None
    received_at: datetime | None = None
    sentiment: float | None = None
    sentiment_label: str | None = None
    was_response: bool = False
    response_time_minutes: float | None = None

    @classmethod
    def from_interaction(cls, interaction: Interaction) -> "InteractionResponse":
        return cls(
            id=interaction.id,
            direction=interaction.direction,
            subject=interaction.subject,
            email_id=interaction.email_id,
            sent_at=interaction.sent_at,
            received_at=interaction.received_at,
            sentiment=interaction.sentiment,
            sentiment_label=interaction.sentiment_label,
            was_response=interaction.was_response,
            response_time_minutes=interaction.response_time_minutes,
        )


class RelationshipDetailResponse(BaseModel):
    relationship: RelationshipResponse
    interactions: list[InteractionResponse]
