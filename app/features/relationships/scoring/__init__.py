"""
Relationship scoring package.

Pure functions that turn per-contact aggregates into a health score and a
suggested action.
"""

from .service import (
    HealthScoreCalculator,
    calculate_health_score,
    generate_suggestion,
    health_band,
    score_breakdown,
)

__all__ = [
    "HealthScoreCalculator",
    "calculate_health_score",
    "generate_suggestion",
    "health_band",
    "score_breakdown",
]
