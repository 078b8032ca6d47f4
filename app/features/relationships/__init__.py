"""
Relationships feature package.

This vertical slice keeps every layer of relationship health tracking
co-located (domain models, sentiment, scoring, the interaction ledger, the
tracking service and the API router).
"""

# Re-export the primary building blocks for easy access.
from .api.router import router as relationships_router  # noqa: F401
from .domain.models import Contact, Interaction, RelationshipEvent  # noqa: F401
from .tracking.service import RelationshipTrackingService, relationship_tracking_service  # noqa: F401
