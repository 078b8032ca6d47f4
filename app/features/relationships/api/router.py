"""
Relationship routes.

List relationship health for the authenticated user, record message events
against contacts, and inspect or re-score a single contact.
"""

import json
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError

from app.auth.verify import current_user_id
from app.features.relationships.api.schemas import (
    InteractionResponse,
    RelationshipDetailResponse,
    RelationshipEventRequest,
    RelationshipListResponse,
    RelationshipResponse,
    TrackingResultResponse,
    TrackRelationshipResponse,
)
from app.features.relationships.ledger.repository import RelationshipStore, relationship_store
from app.features.relationships.scoring.service import HEALTH_BANDS
from app.features.relationships.tracking.service import (
    RelationshipTrackingService,
    relationship_tracking_service,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/relationships", tags=["relationships"])

RECENT_INTERACTIONS_LIMIT = 20


def get_relationship_store() -> RelationshipStore:
    return relationship_store


def get_tracking_service() -> RelationshipTrackingService:
    return relationship_tracking_service


@router.get("", response_model=RelationshipListResponse)
async def list_relationships(
    user_id: str = Depends(current_user_id),
    store: RelationshipStore = Depends(get_relationship_store),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum contacts to return"),
    min_score: int = Query(default=0, ge=0, le=100, alias="minScore"),
    max_score: int = Query(default=100, ge=0, le=100, alias="maxScore"),
    band: Literal["healthy", "cooling", "neglected"] | None = Query(default=None),
):
    """List contacts by health score, weakest first."""
    if band:
        band_min, band_max = HEALTH_BANDS[band]
        min_score, max_score = max(min_score, band_min), min(max_score, band_max)
    if min_score > max_score:
        return RelationshipListResponse(relationships=[])

    try:
        contacts = await store.list_contacts(user_id, min_score, max_score, limit)
    except Exception as e:
        logger.error("Error fetching relationships", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch relationships",
        )

    return RelationshipListResponse(
        relationships=[RelationshipResponse.from_contact(c) for c in contacts]
    )


@router.post("", response_model=TrackRelationshipResponse)
async def track_relationship_event(
    request: Request,
    user_id: str = Depends(current_user_id),
    service: RelationshipTrackingService = Depends(get_tracking_service),
):
    """Record a sent or received email against each counterpart contact."""
    raw = (await request.body()).decode("utf-8", errors="replace")
    if not raw.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty request body")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")

    try:
        event_request = RelationshipEventRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=json.loads(e.json(include_url=False)),
        )

    try:
        results = await service.track_relationship(event_request.to_event(), user_id)
    except Exception as e:
        logger.error("Error analyzing relationship", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze relationship",
        )

    return TrackRelationshipResponse(
        results=[TrackingResultResponse.from_result(r) for r in results]
    )


@router.get("/{contact_id}", response_model=RelationshipDetailResponse)
async def get_relationship(
    contact_id: UUID,
    user_id: str = Depends(current_user_id),
    store: RelationshipStore = Depends(get_relationship_store),
):
    """One contact with its most recent interactions."""
    try:
        contact = await store.get_contact(user_id, str(contact_id))
        interactions = (
            await store.list_interactions(contact.id, limit=RECENT_INTERACTIONS_LIMIT)
            if contact
            else []
        )
    except Exception as e:
        logger.error(
            "Error fetching relationship", user_id=user_id, contact_id=str(contact_id), error=str(e)
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch relationship",
        )

    if contact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Relationship not found")

    return RelationshipDetailResponse(
        relationship=RelationshipResponse.from_contact(contact),
        interactions=[InteractionResponse.from_interaction(i) for i in interactions],
    )


@router.post("/{contact_id}/recompute", response_model=RelationshipResponse)
async def recompute_relationship(
    contact_id: UUID,
    user_id: str = Depends(current_user_id),
    service: RelationshipTrackingService = Depends(get_tracking_service),
):
    """Re-score a contact from its stored history."""
    try:
        contact = await service.recompute_contact(user_id, str(contact_id))
    except Exception as e:
        logger.error(
            "Error recomputing relationship",
            user_id=user_id,
            contact_id=str(contact_id),
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to recompute relationship",
        )

    if contact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Relationship not found")

    return RelationshipResponse.from_contact(contact)
