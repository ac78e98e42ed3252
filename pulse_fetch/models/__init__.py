"""Data models for the application."""
from .requests import ScrapeRequest, ResultHandling
from .responses import (
    EmbeddedResource,
    ToolContent,
    ToolResult,
    ResourceResponse,
    ResourceListResponse,
    StrategyListResponse,
)
from .retrieval import (
    StrategyIdentifier,
    OptimizeFor,
    FailureReason,
    RetrievalRequest,
    FetchOptions,
    RawPayload,
    NormalizedResult,
    AttemptFailure,
    FinalOutput,
    StrategyMemoryEntry,
)

__all__ = [
    "ScrapeRequest",
    "ResultHandling",
    "EmbeddedResource",
    "ToolContent",
    "ToolResult",
    "ResourceResponse",
    "ResourceListResponse",
    "StrategyListResponse",
    "StrategyIdentifier",
    "OptimizeFor",
    "FailureReason",
    "RetrievalRequest",
    "FetchOptions",
    "RawPayload",
    "NormalizedResult",
    "AttemptFailure",
    "FinalOutput",
    "StrategyMemoryEntry",
]
