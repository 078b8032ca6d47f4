"""
Persistence for relationship contacts and their interaction ledger.

Backed by two Postgres tables:

    relationship_contacts      one row per (user_id, email), unique on that pair
    relationship_interactions  append-only, relationship_id -> relationship_contacts.id

`RelationshipStore` is the contract the tracking service depends on.
`PostgresRelationshipStore.locked()` opens a transaction holding an advisory
lock on (user_id, email) and yields a store bound to that transaction, so one
contact's read-modify-write is serialized and atomic.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Protocol

import psycopg

from app.db.helpers import execute_query, fetch_all, fetch_one
from app.db.pool import get_db_transaction
from app.features.relationships.domain.models import Contact, Interaction
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

CONTACT_COLUMNS = """
    id, user_id, email, display_name, health_score, emails_sent, emails_received,
    total_emails, last_contact_at, recency_score, response_score, initiation_score,
    sentiment_score, commitment_score, avg_sentiment, sentiment_trend,
    avg_response_time_minutes, commitments_made, commitments_kept,
    suggested_action, action_suggested_at, last_email_id, created_at, updated_at
"""

INTERACTION_COLUMNS = """
    id, relationship_id, type, direction, email_id, subject, sent_at, received_at,
    sentiment, sentiment_label, was_response, response_time_minutes, created_at
"""


class RelationshipStore(Protocol):
    async def find_contact(self, user_id: str, email: str) -> Contact | None: ...

    async def create_contact(self, user_id: str, email: str) -> Contact: ...

    async def append_interaction(self, interaction: Interaction) -> Interaction: ...

    async def list_interactions(
        self, contact_id: str, limit: int | None = None
    ) -> list[Interaction]: ...

    async def update_contact(self, contact: Contact) -> None: ...

    async def get_contact(self, user_id: str, contact_id: str) -> Contact | None: ...

    async def list_contacts(
        self, user_id: str, min_score: int = 0, max_score: int = 100, limit: int = 50
    ) -> list[Contact]: ...

    def locked(
        self, user_id: str, email: str
    ) -> AbstractAsyncContextManager["RelationshipStore"]: ...


def _float(value: Any, default: float | None = 0.0) -> float | None:
    return float(value) if value is not None else default


def row_to_contact(row: dict[str, Any]) -> Contact:
    return Contact(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        email=row["email"],
        display_name=row.get("display_name"),
        health_score=row.get("health_score") or 0,
        emails_sent=row.get("emails_sent") or 0,
        emails_received=row.get("emails_received") or 0,
        total_emails=row.get("total_emails") or 0,
        last_contact_at=row.get("last_contact_at"),
        recency_score=_float(row.get("recency_score")),
        response_score=_float(row.get("response_score")),
        initiation_score=_float(row.get("initiation_score")),
        sentiment_score=_float(row.get("sentiment_score")),
        commitment_score=_float(row.get("commitment_score")),
        avg_sentiment=_float(row.get("avg_sentiment")),
        sentiment_trend=row.get("sentiment_trend") or "stable",
        avg_response_time_minutes=_float(row.get("avg_response_time_minutes"), None),
        commitments_made=row.get("commitments_made") or 0,
        commitments_kept=row.get("commitments_kept") or 0,
        suggested_action=row.get("suggested_action"),
        action_suggested_at=row.get("action_suggested_at"),
        last_email_id=row.get("last_email_id"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def row_to_interaction(row: dict[str, Any]) -> Interaction:
    return Interaction(
        id=str(row["id"]),
        contact_id=str(row["relationship_id"]),
        type=row.get("type") or "email",
        direction=row["direction"],
        email_id=row.get("email_id"),
        subject=row.get("subject") or "",
        sent_at=row.get("sent_at"),
        received_at=row.get("received_at"),
        sentiment=_float(row.get("sentiment"), None),
        sentiment_label=row.get("sentiment_label"),
        was_response=bool(row.get("was_response")),
        response_time_minutes=_float(row.get("response_time_minutes"), None),
        created_at=row.get("created_at"),
    )


class PostgresRelationshipStore:
    """Raw SQL access to the relationship tables."""

    def __init__(self, connection: psycopg.AsyncConnection | None = None):
        self._connection = connection

    @asynccontextmanager
    async def locked(self, user_id: str, email: str) -> AsyncIterator["PostgresRelationshipStore"]:
        if self._connection is not None:
            # Already inside a contact transaction
            yield self
            return

        async with await get_db_transaction() as conn:
            await conn.execute(
                "SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))",
                (f"relationship:{user_id}:{email}",),
            )
            yield PostgresRelationshipStore(connection=conn)

    async def find_contact(self, user_id: str, email: str) -> Contact | None:
        row = await fetch_one(
            f"""
            SELECT {CONTACT_COLUMNS}
            FROM relationship_contacts
            WHERE user_id = %s
              AND email = %s
            """,
            (user_id, email),
            connection=self._connection,
        )
        return row_to_contact(row) if row else None

    async def get_contact(self, user_id: str, contact_id: str) -> Contact | None:
        row = await fetch_one(
            f"""
            SELECT {CONTACT_COLUMNS}
            FROM relationship_contacts
            WHERE user_id = %s
              AND id = %s
            """,
            (user_id, contact_id),
            connection=self._connection,
        )
        return row_to_contact(row) if row else None

    async def create_contact(self, user_id: str, email: str) -> Contact:
        # Upsert so a concurrent creator for the same pair returns the existing row
        row = await fetch_one(
            f"""
            INSERT INTO relationship_contacts (
                user_id, email, health_score, total_emails, emails_sent, emails_received
            )
            VALUES (%s, %s, 0, 0, 0, 0)
            ON CONFLICT (user_id, email)
            DO UPDATE SET updated_at = relationship_contacts.updated_at
            RETURNING {CONTACT_COLUMNS}
            """,
            (user_id, email),
            connection=self._connection,
        )
        if not row:
            raise RuntimeError(f"Contact insert returned no row for {email}")
        logger.info("Relationship contact created", user_id=user_id, contact_id=str(row["id"]))
        return row_to_contact(row)

    async def append_interaction(self, interaction: Interaction) -> Interaction:
        row = await fetch_one(
            f"""
            INSERT INTO relationship_interactions (
                relationship_id, type, direction, email_id, subject, sent_at,
                received_at, sentiment, sentiment_label, was_response,
                response_time_minutes
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {INTERACTION_COLUMNS}
            """,
            (
                interaction.contact_id,
                interaction.type,
                interaction.direction,
                interaction.email_id,
                interaction.subject,
                interaction.sent_at,
                interaction.received_at,
                interaction.sentiment,
                interaction.sentiment_label,
                interaction.was_response,
                interaction.response_time_minutes,
            ),
            connection=self._connection,
        )
        if not row:
            raise RuntimeError("Interaction insert returned no row")
        return row_to_interaction(row)

    async def list_interactions(self, contact_id: str, limit: int | None = None) -> list[Interaction]:
        query = f"""
            SELECT {INTERACTION_COLUMNS}
            FROM relationship_interactions
            WHERE relationship_id = %s
            ORDER BY created_at DESC, id DESC
        """
        params: tuple = (contact_id,)
        if limit is not None:
            query += " LIMIT %s"
            params = (contact_id, limit)
        rows = await fetch_all(query, params, connection=self._connection)
        return [row_to_interaction(row) for row in rows]

    async def update_contact(self, contact: Contact) -> None:
        updated = await execute_query(
            """
            UPDATE relationship_contacts
            SET health_score = %s,
                emails_sent = %s,
                emails_received = %s,
                total_emails = %s,
                last_contact_at = %s,
                last_email_id = %s,
                recency_score = %s,
                response_score = %s,
                initiation_score = %s,
                sentiment_score = %s,
                commitment_score = %s,
                avg_sentiment = %s,
                sentiment_trend = %s,
                avg_response_time_minutes = %s,
                suggested_action = %s,
                action_suggested_at = %s,
                updated_at = NOW()
            WHERE id = %s
              AND user_id = %s
            """,
            (
                contact.health_score,
                contact.emails_sent,
                contact.emails_received,
                contact.total_emails,
                contact.last_contact_at,
                contact.last_email_id,
                contact.recency_score,
                contact.response_score,
                contact.initiation_score,
                contact.sentiment_score,
                contact.commitment_score,
                contact.avg_sentiment,
                contact.sentiment_trend,
                contact.avg_response_time_minutes,
                contact.suggested_action,
                contact.action_suggested_at,
                contact.id,
                contact.user_id,
            ),
            connection=self._connection,
        )
        if updated == 0:
            raise RuntimeError(f"Contact {contact.id} not found for update")

    async def list_contacts(
        self, user_id: str, min_score: int = 0, max_score: int = 100, limit: int = 50
    ) -> list[Contact]:
        """Contacts in the score range, weakest relationships first."""
        rows = await fetch_all(
            f"""
            SELECT {CONTACT_COLUMNS}
            FROM relationship_contacts
            WHERE user_id = %s
              AND health_score >= %s
              AND health_score <= %s
            ORDER BY health_score ASC, last_contact_at DESC NULLS LAST
            LIMIT %s
            """,
            (user_id, min_score, max_score, limit),
            connection=self._connection,
        )
        return [row_to_contact(row) for row in rows]


relationship_store = PostgresRelationshipStore()
