"""
Relationship tracking package.

Orchestrates sentiment, the interaction ledger and scoring for each
message event.
"""

from .service import (
    RelationshipTrackingService,
    extract_contact_emails,
    relationship_tracking_service,
)

__all__ = [
    "RelationshipTrackingService",
    "extract_contact_emails",
    "relationship_tracking_service",
]
