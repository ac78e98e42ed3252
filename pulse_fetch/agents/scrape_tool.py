"""The `scrape` tool: agent-facing wrapper around the orchestrator."""
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..config import settings
from ..exceptions import AllStrategiesExhausted, InvalidRequestError
from ..models import (
    EmbeddedResource,
    ResourceResponse,
    ResultHandling,
    RetrievalRequest,
    ScrapeRequest,
    ToolContent,
    ToolResult,
)
from ..services.content_normalizer import bound_text
from ..services.storage_service import ResourceStorage
from ..utils.logger import logger
from .orchestrator import Orchestrator


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "arguments"
        problems.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(problems)


class ScrapeTool:
    """Validates tool arguments, runs a retrieval and shapes the result for the agent."""

    name = "scrape"
    description = (
        "Scrape a single webpage and return its content as markdown. Tries the cheapest "
        "working strategy first and remembers what worked for each site."
    )

    def __init__(
        self,
        orchestrator: Orchestrator,
        storage: ResourceStorage,
        default_max_chars: Optional[int] = None,
    ):
        """Initialize the tool.

        Args:
            orchestrator: Orchestrator that performs retrievals
            storage: Storage for saved results
            default_max_chars: Inline bound when the caller sets none. Defaults to settings.default_max_chars
        """
        self.orchestrator = orchestrator
        self.storage = storage
        self.default_max_chars = default_max_chars or settings.default_max_chars

    async def call(self, arguments: Dict[str, Any]) -> ToolResult:
        """Run the tool with raw arguments.

        Args:
            arguments: Tool arguments (camelCase names as sent by agents)

        Returns:
            Tool result; failures are reported with isError set, never raised
        """
        try:
            request = ScrapeRequest.model_validate(arguments)
        except ValidationError as e:
            return self._error(f"Invalid arguments: {_format_validation_error(e)}")

        return await self.scrape(request)

    async def scrape(self, request: ScrapeRequest) -> ToolResult:
        """Run the tool with validated arguments."""
        max_chars = request.max_chars or self.default_max_chars
        handling = request.result_handling

        if not request.force_rescrape and handling != ResultHandling.RETURN_ONLY:
            try:
                cached = self.storage.find_by_url_and_extract(request.url, request.extract)
            except (OSError, ValueError) as e:
                logger.warning(f"[Tool] Saved resource lookup failed for {request.url}, scraping instead: {e}")
                cached = []
            if cached:
                logger.info(f"[Tool] Serving {request.url} from saved resource {cached[0].resource_id}")
                return self._from_cache(cached[0], handling, max_chars)

        try:
            retrieval = RetrievalRequest(
                url=request.url,
                extract_query=request.extract,
                max_output_chars=max_chars,
                per_attempt_timeout=request.timeout / 1000 if request.timeout else None,
                total_timeout=request.total_timeout / 1000 if request.total_timeout else None,
                force_refresh=request.force_rescrape,
                main_content_only=request.only_main_content,
            )
            output = await self.orchestrator.retrieve(retrieval)
        except (ValidationError, InvalidRequestError) as e:
            return self._error(f"Invalid arguments: {e}")
        except AllStrategiesExhausted as e:
            return self._error(f"Failed to scrape {request.url}. {e}")

        preview = f"{output.text}\n\n---\nScraped using: {output.strategy_used.value}"

        if handling == ResultHandling.RETURN_ONLY:
            return ToolResult(content=[ToolContent(type="text", text=preview)])

        try:
            saved = self.storage.write(
                url=request.url,
                text=output.full_text,
                strategy=output.strategy_used,
                extract=request.extract if output.extracted else None,
            )
        except OSError as e:
            logger.error(f"[Tool] Failed to save result for {request.url}: {e}")
            return ToolResult(
                content=[ToolContent(type="text", text=f"{preview}\n\nResult could not be saved: {e}")]
            )

        logger.info(f"[Tool] Saved {request.url} as {saved.uri}")
        return self._resource_result(saved, handling, preview)

    def _from_cache(
        self, resource: ResourceResponse, handling: ResultHandling, max_chars: int
    ) -> ToolResult:
        text, _ = bound_text(resource.text or "", max_chars)
        strategy = resource.strategy.value if resource.strategy else "unknown"
        preview = f"{text}\n\n---\nServed from cache. Scraped using: {strategy}"
        return self._resource_result(resource, handling, preview)

    def _resource_result(
        self, resource: ResourceResponse, handling: ResultHandling, preview: str
    ) -> ToolResult:
        description = f"Scraped content from {resource.url}"

        if handling == ResultHandling.SAVE_ONLY:
            item = ToolContent(
                type="resource_link",
                uri=resource.uri,
                name=resource.url,
                mimeType=resource.mime_type,
                description=description,
            )
        else:
            item = ToolContent(
                type="resource",
                resource=EmbeddedResource(
                    uri=resource.uri,
                    name=resource.url,
                    mimeType=resource.mime_type,
                    description=description,
                    text=preview,
                ),
            )
        return ToolResult(content=[item])

    def _error(self, message: str) -> ToolResult:
        logger.warning(f"[Tool] {message}")
        return ToolResult(content=[ToolContent(type="text", text=message)], isError=True)
