"""Data models for the adaptive retrieval engine."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.urls import validate_absolute_url


class StrategyIdentifier(str, Enum):
    """Retrieval backends, in natural cost order."""

    DIRECT = "direct"
    MANAGED_API = "managed-api"
    PROXY_API = "proxy-api"

    @classmethod
    def parse(cls, value: str) -> Optional["StrategyIdentifier"]:
        """Parse a strategy name, accepting the legacy backend names.

        Returns:
            The strategy, or None for unknown names
        """
        name = (value or "").strip().lower()
        name = LEGACY_STRATEGY_NAMES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            return None


LEGACY_STRATEGY_NAMES = {
    "native": "direct",
    "firecrawl": "managed-api",
    "brightdata": "proxy-api",
}

# Cheapest first
COST_ORDER = [
    StrategyIdentifier.DIRECT,
    StrategyIdentifier.MANAGED_API,
    StrategyIdentifier.PROXY_API,
]


class OptimizeFor(str, Enum):
    """Goal used to order the remaining strategies after any cached preference."""

    COST = "cost"
    SPEED = "speed"


class FailureReason(str, Enum):
    """Why a single strategy attempt failed."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate-limited"
    NON_SUCCESS_STATUS = "non-success-status"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse-error"


class RetrievalRequest(BaseModel):
    """A single URL retrieval request."""

    url: str
    extract_query: Optional[str] = None
    max_output_chars: Optional[int] = Field(default=None, gt=0)
    per_attempt_timeout: Optional[float] = Field(
        default=None, gt=0, description="Seconds allowed for each strategy attempt"
    )
    total_timeout: Optional[float] = Field(
        default=None, gt=0, description="Seconds allowed for the whole plan"
    )
    force_refresh: bool = False
    main_content_only: bool = False

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return validate_absolute_url(value)


class FetchOptions(BaseModel):
    """Options forwarded to a backend adapter for one attempt."""

    timeout: float
    main_content_only: bool = False


class RawPayload(BaseModel):
    """Raw content returned by a backend adapter."""

    body: str
    declared_content_type: str = ""
    status_code: int = 200
    content: Optional[bytes] = Field(
        default=None, description="Undecoded bytes, kept for binary documents"
    )


class NormalizedResult(BaseModel):
    """Bounded text produced by the content normalizer."""

    model_config = ConfigDict(frozen=True)

    text: str
    strategy_used: Optional[StrategyIdentifier] = None
    truncated: bool = False


class AttemptFailure(BaseModel):
    """One failed strategy attempt."""

    model_config = ConfigDict(frozen=True)

    strategy: StrategyIdentifier
    reason: FailureReason
    detail: str = ""
    status_code: Optional[int] = None

    def describe(self) -> str:
        """Render as `strategy: reason (detail)`."""
        text = f"{self.strategy.value}: {self.reason.value}"
        if self.detail:
            text += f" ({self.detail})"
        return text


class FinalOutput(BaseModel):
    """Successful retrieval result returned to the caller."""

    model_config = ConfigDict(frozen=True)

    url: str
    text: str
    strategy_used: StrategyIdentifier
    truncated: bool = False
    full_text: str = ""
    content_type: str = ""
    extracted: bool = False
    extraction_error: Optional[str] = None
    attempts: List[AttemptFailure] = Field(default_factory=list)


class StrategyMemoryEntry(BaseModel):
    """A learned URL-prefix to strategy preference."""

    prefix: str
    default_strategy: StrategyIdentifier
    notes: str = ""
