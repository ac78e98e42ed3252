"""Response models for the scrape tool and API endpoints."""
from datetime import datetime
from typing import Optional, List, Literal

from pydantic import BaseModel, Field

from .retrieval import StrategyIdentifier, StrategyMemoryEntry


class EmbeddedResource(BaseModel):
    """Saved content inlined into a tool result."""

    uri: str
    name: str
    mimeType: str = "text/markdown"
    description: str = ""
    text: str = ""


class ToolContent(BaseModel):
    """One item of a tool result."""

    type: Literal["text", "resource", "resource_link"]
    text: Optional[str] = None
    resource: Optional[EmbeddedResource] = None
    uri: Optional[str] = None
    name: Optional[str] = None
    mimeType: Optional[str] = None
    description: Optional[str] = None


class ToolResult(BaseModel):
    """Result of a tool invocation, as handed back to the agent."""

    content: List[ToolContent]
    isError: bool = False

    @property
    def text(self) -> str:
        """Concatenated inline text of all content items."""
        parts = []
        for item in self.content:
            if item.text:
                parts.append(item.text)
            elif item.resource is not None:
                parts.append(item.resource.text)
        return "\n".join(parts)


class ResourceResponse(BaseModel):
    """A saved scrape result."""

    resource_id: str
    uri: str
    url: str
    mime_type: str = "text/markdown"
    strategy: Optional[StrategyIdentifier] = None
    extract: Optional[str] = None
    created_at: datetime
    text: Optional[str] = None


class ResourceListResponse(BaseModel):
    """Response model for listing saved resources."""

    resources: List[ResourceResponse]
    total: int = Field(..., description="Total number of resources")


class StrategyListResponse(BaseModel):
    """Response model for listing learned strategy preferences."""

    entries: List[StrategyMemoryEntry]
    total: int
