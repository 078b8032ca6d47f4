"""
Sentiment estimation for relationship interactions.

Uses an OpenAI-compatible chat completion when a key is configured and a
keyword heuristic otherwise. Provider failures never reach the caller; they
come back as a ProviderResult carrying the error and are resolved to a
neutral sentiment.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from app.config import settings
from app.features.relationships.domain.models import SentimentLabel, SentimentResult
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

POSITIVE_WORDS = (
    "thanks",
    "great",
    "good",
    "excellent",
    "happy",
    "wonderful",
    "appreciate",
    "love",
)
NEGATIVE_WORDS = (
    "sorry",
    "problem",
    "issue",
    "bad",
    "difficult",
    "unfortunately",
    "disappointed",
)
KEYWORD_WEIGHT = 0.2
LABEL_THRESHOLD = 0.2

SYSTEM_PROMPT = (
    "Analyze the sentiment of this email. Respond with just a number between "
    "-1 (very negative) and 1 (very positive), or 0 for neutral. "
    "Example responses: 0.8, -0.3, 0"
)

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)")

# Bad key, no access, unknown model: retrying the next email will not help
NON_RECOVERABLE_STATUS_CODES = frozenset({401, 403, 404})

NEUTRAL = SentimentResult(score=0.0, label="neutral", source="fallback")


class SentimentProviderError(Exception):
    """Raised inside the provider call when the remote estimate cannot be obtained."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


@dataclass(slots=True, frozen=True)
class ProviderResult:
    """Outcome of a remote sentiment call: exactly one of value / error is set."""

    value: SentimentResult | None = None
    error: SentimentProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    def or_else(self, fallback: Callable[[SentimentProviderError], SentimentResult]) -> SentimentResult:
        if self.value is not None:
            return self.value
        return fallback(self.error)


def label_for(score: float) -> SentimentLabel:
    if score > LABEL_THRESHOLD:
        return "positive"
    if score < -LABEL_THRESHOLD:
        return "negative"
    return "neutral"


def keyword_sentiment(text: str) -> SentimentResult:
    """Score text by counting fixed positive/negative words (substring match)."""
    lower = (text or "").lower()
    score = 0.0
    for word in POSITIVE_WORDS:
        if word in lower:
            score += KEYWORD_WEIGHT
    for word in NEGATIVE_WORDS:
        if word in lower:
            score -= KEYWORD_WEIGHT
    score = max(-1.0, min(1.0, round(score, 4)))
    return SentimentResult(score=score, label=label_for(score), source="keyword")


def parse_score(reply: str | None) -> float:
    """
    Pull the first number out of a model reply.

    Replies without a number, or with a number outside [-1, 1], score 0.
    """
    if not reply:
        return 0.0
    match = _NUMBER_RE.search(reply)
    if not match:
        return 0.0
    try:
        value = float(match.group(0))
    except ValueError:
        return 0.0
    if value < -1.0 or value > 1.0:
        return 0.0
    return value


class SentimentService:
    """Estimate sentiment for a piece of email text."""

    def __init__(self, client: AsyncOpenAI | None = None, timeout_seconds: float | None = None):
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.SENTIMENT_TIMEOUT_SECONDS
        )
        self.client = client
        if self.client is None and settings.sentiment_provider_enabled():
            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.OPENAI_BASE_URL,
                timeout=self.timeout_seconds,
                max_retries=0,
            )
            logger.info(
                "Sentiment provider configured",
                model=settings.SENTIMENT_MODEL,
                base_url=settings.OPENAI_BASE_URL or "default",
                timeout=self.timeout_seconds,
            )

    @property
    def remote_enabled(self) -> bool:
        return self.client is not None

    async def estimate(self, text: str) -> SentimentResult:
        """
        Estimate sentiment of text as a score in [-1, 1] plus a label.

        Never raises: without a provider the keyword heuristic is used, and a
        failing provider degrades to neutral.
        """
        if not self.remote_enabled:
            return keyword_sentiment(text)

        outcome = await self.estimate_remote(text)
        return outcome.or_else(self._neutral_on_error)

    async def estimate_remote(self, text: str) -> ProviderResult:
        try:
            reply = await asyncio.wait_for(self._complete(text), timeout=self.timeout_seconds)
        except TimeoutError:
            return ProviderResult(
                error=SentimentProviderError(
                    f"Sentiment provider timed out after {self.timeout_seconds}s"
                )
            )
        except openai.APIStatusError as e:
            return ProviderResult(
                error=SentimentProviderError(
                    f"Sentiment provider error: {e}",
                    recoverable=e.status_code not in NON_RECOVERABLE_STATUS_CODES,
                )
            )
        except openai.APIError as e:
            return ProviderResult(error=SentimentProviderError(f"Sentiment provider error: {e}"))
        except SentimentProviderError as e:
            return ProviderResult(error=e)
        except Exception as e:
            return ProviderResult(
                error=SentimentProviderError(
                    f"Unexpected sentiment provider failure: {type(e).__name__}: {e}"
                )
            )

        score = parse_score(reply)
        return ProviderResult(value=SentimentResult(score=score, label=label_for(score), source="remote"))

    async def _complete(self, text: str) -> str:
        response = await self.client.chat.completions.create(
            model=settings.SENTIMENT_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": (text or "")[: settings.SENTIMENT_MAX_INPUT_CHARS]},
            ],
            temperature=settings.SENTIMENT_TEMPERATURE,
        )
        if not response.choices:
            raise SentimentProviderError("Empty response from sentiment provider")
        return response.choices[0].message.content or ""

    @staticmethod
    def _neutral_on_error(error: SentimentProviderError) -> SentimentResult:
        if error.recoverable:
            logger.warning("Sentiment estimation degraded to neutral", error=str(error))
        else:
            logger.error(
                "Sentiment provider rejected the request, check OPENAI_API_KEY and SENTIMENT_MODEL",
                error=str(error),
            )
        return NEUTRAL


_sentiment_service: SentimentService | None = None


def get_sentiment_service() -> SentimentService:
    global _sentiment_service
    if _sentiment_service is None:
        _sentiment_service = SentimentService()
    return _sentiment_service


async def estimate_sentiment(text: str) -> SentimentResult:
    """Convenience wrapper around the shared SentimentService."""
    return await get_sentiment_service().estimate(text)
