"""Agents for the application."""
from ..services.storage_service import resource_storage
from .content_extractor import ContentExtractor, create_content_extractor
from .orchestrator import Orchestrator, create_orchestrator
from .scrape_tool import ScrapeTool

# Global instances wired from settings
orchestrator = create_orchestrator()
scrape_tool = ScrapeTool(orchestrator, resource_storage)

__all__ = [
    "ContentExtractor",
    "create_content_extractor",
    "Orchestrator",
    "create_orchestrator",
    "orchestrator",
    "ScrapeTool",
    "scrape_tool",
]
