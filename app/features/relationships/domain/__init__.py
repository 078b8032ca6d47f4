"""
Domain subpackage for the relationships feature.
"""

from .models import (
    Contact,
    HealthScoreInputs,
    Interaction,
    InteractionAggregate,
    RelationshipEvent,
    ScoreBreakdown,
    SentimentResult,
    TrackingResult,
)

__all__ = [
    "Contact",
    "HealthScoreInputs",
    "Interaction",
    "InteractionAggregate",
    "RelationshipEvent",
    "ScoreBreakdown",
    "SentimentResult",
    "TrackingResult",
]
