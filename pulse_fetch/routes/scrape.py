"""Scraping API endpoints."""
from fastapi import APIRouter, HTTPException

from ..models import ScrapeRequest, ToolResult
from ..agents import scrape_tool
from ..utils.logger import logger

router = APIRouter(prefix="/api", tags=["scrape"])


@router.post("/scrape", response_model=ToolResult)
async def scrape(request: ScrapeRequest) -> ToolResult:
    """Scrape a single URL.

    Args:
        request: Scrape arguments (URL, optional extraction query, bounds, result handling)

    Returns:
        Tool result. Retrieval failures are reported with isError set and a 200 status
    """
    try:
        logger.info(f"Scrape requested for URL: {request.url}")
        return await scrape_tool.scrape(request)

    except Exception as e:
        logger.error(f"Error scraping {request.url}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
