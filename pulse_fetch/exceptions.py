"""Request-level errors raised to callers of the retrieval engine."""
from typing import List

from .models.retrieval import AttemptFailure


class PulseFetchError(Exception):
    """Base class for pulse-fetch errors."""


class InvalidRequestError(PulseFetchError, ValueError):
    """The request was rejected before any network activity."""


class ExtractionError(PulseFetchError):
    """An extraction backend could not answer the query."""


class AllStrategiesExhausted(PulseFetchError):
    """Every candidate strategy failed, or none was configured."""

    def __init__(
        self,
        url: str,
        attempts: List[AttemptFailure],
        deadline_exceeded: bool = False,
    ):
        self.url = url
        self.attempts = list(attempts)
        self.deadline_exceeded = deadline_exceeded
        super().__init__(self.describe())

    def describe(self) -> str:
        """Human-readable summary listing each attempted strategy and its reason."""
        if not self.attempts:
            if self.deadline_exceeded:
                return "Request deadline exceeded before any strategy was attempted."
            return (
                "No scraping strategy is configured. Enable direct fetching or "
                "set FIRECRAWL_API_KEY / BRIGHTDATA_API_KEY."
            )

        attempted = ", ".join(a.strategy.value for a in self.attempts)
        details = "; ".join(a.describe() for a in self.attempts)
        message = f"All strategies failed. Attempted: {attempted}. Errors: {details}"
        if self.deadline_exceeded:
            message += ". Request deadline exceeded before the plan completed"
        return message
