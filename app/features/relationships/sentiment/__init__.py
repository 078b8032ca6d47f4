"""
Sentiment package.

Turns email text into a score in [-1, 1] with a positive/negative/neutral label.
"""

from .service import SentimentService, estimate_sentiment, get_sentiment_service

__all__ = ["SentimentService", "estimate_sentiment", "get_sentiment_service"]
