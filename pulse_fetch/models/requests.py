"""Request models for the scrape tool and API endpoints."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.urls import validate_absolute_url


class ResultHandling(str, Enum):
    """How a scrape result is handed back to the agent."""

    RETURN_ONLY = "returnOnly"
    SAVE_AND_RETURN = "saveAndReturn"
    SAVE_ONLY = "saveOnly"


class ScrapeRequest(BaseModel):
    """Arguments of the `scrape` tool."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "url": "https://example.com",
                "extract": "What is this page about?",
                "maxChars": 5000,
                "resultHandling": "returnOnly",
            }
        },
    )

    url: str = Field(..., description="URL to scrape")
    extract: Optional[str] = Field(
        None,
        description="Natural-language query to answer from the page instead of returning it whole",
        min_length=1,
    )
    max_chars: Optional[int] = Field(
        None, alias="maxChars", gt=0, description="Maximum characters to return inline"
    )
    timeout: Optional[int] = Field(
        None, gt=0, description="Per-attempt timeout in milliseconds"
    )
    total_timeout: Optional[int] = Field(
        None,
        alias="totalTimeout",
        gt=0,
        description="Timeout in milliseconds for all attempts together",
    )
    force_rescrape: bool = Field(
        False,
        alias="forceRescrape",
        description="Ignore saved results and learned strategy preferences",
    )
    only_main_content: bool = Field(
        True,
        alias="onlyMainContent",
        description="Drop navigation, footers and other page boilerplate",
    )
    result_handling: ResultHandling = Field(
        ResultHandling.SAVE_AND_RETURN, alias="resultHandling"
    )

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return validate_absolute_url(value)
