"""
Interaction ledger package.

Stores contacts and their interactions and rebuilds per-contact statistics
from the full history.
"""

from .aggregation import aggregate_interactions, detect_response, sentiment_trend
from .repository import PostgresRelationshipStore, RelationshipStore, relationship_store

__all__ = [
    "PostgresRelationshipStore",
    "RelationshipStore",
    "aggregate_interactions",
    "detect_response",
    "relationship_store",
    "sentiment_trend",
]
