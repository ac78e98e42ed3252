"""Strategy selector and orchestrator for adaptive page retrieval."""
import asyncio
import time
from typing import Dict, List, Optional, Tuple

from ..config import settings
from ..exceptions import AllStrategiesExhausted, InvalidRequestError
from ..models.retrieval import (
    COST_ORDER,
    AttemptFailure,
    FailureReason,
    FetchOptions,
    FinalOutput,
    OptimizeFor,
    RawPayload,
    RetrievalRequest,
    StrategyIdentifier,
    StrategyMemoryEntry,
)
from ..services import build_scraping_clients
from ..services.content_normalizer import ContentNormalizer, bound_text, content_normalizer
from ..services.scraping_backend import ScrapingBackend, classify_error_message
from ..services.strategy_store import FilesystemStrategyStore, StrategyStore, extract_url_pattern
from ..utils.logger import logger
from ..utils.urls import validate_absolute_url
from .content_extractor import ContentExtractor, create_content_extractor


def _discard_result(task: asyncio.Future) -> None:
    """Retrieve the outcome of an abandoned attempt so it is never reported as unhandled."""
    if not task.cancelled():
        task.exception()


class Orchestrator:
    """Builds a strategy plan per request and drives the backends through it."""

    def __init__(
        self,
        clients: Dict[StrategyIdentifier, ScrapingBackend],
        store: StrategyStore,
        extractor: Optional[ContentExtractor] = None,
        normalizer: Optional[ContentNormalizer] = None,
        optimize_for: OptimizeFor = OptimizeFor.COST,
        default_timeout: Optional[float] = None,
    ):
        """Initialize the orchestrator.

        Args:
            clients: Configured backends keyed by strategy; unconfigured ones are absent
            store: Strategy memory
            extractor: Optional extraction adapter
            normalizer: Content normalizer. Defaults to the global content_normalizer
            optimize_for: Goal used to order strategies after any cached preference
            default_timeout: Per-attempt timeout in seconds. Defaults to settings.default_timeout
        """
        self.clients = dict(clients)
        self.store = store
        self.extractor = extractor
        self.normalizer = normalizer or content_normalizer
        self.optimize_for = OptimizeFor(optimize_for)
        self.default_timeout = default_timeout or settings.default_timeout

    @property
    def configured_strategies(self) -> List[StrategyIdentifier]:
        """Configured strategies in cost order."""
        return [s for s in COST_ORDER if s in self.clients]

    async def build_plan(
        self, request: RetrievalRequest
    ) -> Tuple[List[StrategyIdentifier], Optional[StrategyMemoryEntry]]:
        """Order the candidate strategies for a request.

        Returns:
            Tuple of (plan, matched memory entry or None)
        """
        configured = self.configured_strategies

        cached_entry = None
        if not request.force_refresh:
            try:
                cached_entry = await self.store.lookup_entry(request.url)
            except Exception as e:
                logger.warning(f"[Scrape] Failed to load strategy memory: {e}")
            if cached_entry and cached_entry.default_strategy not in self.clients:
                logger.info(
                    f"[Scrape] Remembered strategy {cached_entry.default_strategy.value} "
                    f"is not configured; ignoring it"
                )
                cached_entry = None

        plan: List[StrategyIdentifier] = []
        if cached_entry:
            plan.append(cached_entry.default_strategy)

        if self.optimize_for == OptimizeFor.SPEED:
            # Direct fetches against protected sites hang or fail late
            goal_order = [s for s in configured if s != StrategyIdentifier.DIRECT]
            if not goal_order and StrategyIdentifier.DIRECT in configured:
                goal_order = [StrategyIdentifier.DIRECT]
        else:
            goal_order = configured

        plan.extend(s for s in goal_order if s not in plan)
        return plan, cached_entry

    async def retrieve(self, request: RetrievalRequest) -> FinalOutput:
        """Fetch, normalize and optionally extract a URL.

        Args:
            request: The retrieval request

        Returns:
            The bounded final output

        Raises:
            InvalidRequestError: if the URL is not an absolute http(s) URI
            AllStrategiesExhausted: if no strategy is configured or all of them failed
        """
        try:
            validate_absolute_url(request.url)
        except ValueError as e:
            raise InvalidRequestError(str(e)) from e

        url = request.url
        plan, cached_entry = await self.build_plan(request)
        if not plan:
            logger.error(f"[Scrape] No strategy configured for {url}")
            raise AllStrategiesExhausted(url, [])

        logger.info(f"[Scrape] Plan for {url}: {', '.join(s.value for s in plan)}")

        loop = asyncio.get_running_loop()
        per_attempt = request.per_attempt_timeout or self.default_timeout
        deadline = loop.time() + request.total_timeout if request.total_timeout else None

        failures: List[AttemptFailure] = []
        payload: Optional[RawPayload] = None
        winner: Optional[StrategyIdentifier] = None

        for strategy in plan:
            timeout = per_attempt
            capped = False
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.warning(f"[Scrape] Deadline exceeded for {url} before trying {strategy.value}")
                    raise AllStrategiesExhausted(url, failures, deadline_exceeded=True)
                if remaining < timeout:
                    timeout = remaining
                    capped = True

            payload, failure = await self._attempt(strategy, request, timeout)
            if payload is not None:
                winner = strategy
                break
            failures.append(failure)

            if capped and failure.reason == FailureReason.TIMEOUT:
                logger.warning(f"[Scrape] Deadline exceeded for {url} during {strategy.value}")
                raise AllStrategiesExhausted(url, failures, deadline_exceeded=True)

        if winner is None or payload is None:
            logger.error(f"[Scrape] All strategies failed for {url}")
            raise AllStrategiesExhausted(url, failures)

        normalized = self.normalizer.normalize(
            payload,
            main_content_only=request.main_content_only,
            base_url=url,
            strategy=winner,
        )
        content_type = payload.declared_content_type
        # The raw payload is not retained past normalization
        payload = None

        full_text = normalized.text
        extracted = False
        extraction_error = None

        if request.extract_query:
            if self.extractor is None:
                extraction_error = "Extraction is not configured"
                logger.info(f"[Scrape] Extraction requested for {url} but no extractor is configured")
            else:
                answer, error = await self.extractor.extract(full_text, request.extract_query)
                if answer is not None:
                    full_text = answer
                    extracted = True
                else:
                    extraction_error = error
                    logger.warning(f"[Scrape] Extraction failed for {url}, returning page content: {error}")

        text, truncated = bound_text(full_text, request.max_output_chars)

        await self._remember(url, winner, cached_entry)

        return FinalOutput(
            url=url,
            text=text,
            strategy_used=winner,
            truncated=truncated,
            full_text=full_text,
            content_type=content_type,
            extracted=extracted,
            extraction_error=extraction_error,
            attempts=failures,
        )

    async def _attempt(
        self, strategy: StrategyIdentifier, request: RetrievalRequest, timeout: float
    ) -> Tuple[Optional[RawPayload], Optional[AttemptFailure]]:
        """Run one strategy with a timeout. Failures are returned, never raised."""
        client = self.clients[strategy]
        options = FetchOptions(timeout=timeout, main_content_only=request.main_content_only)
        start_time = time.monotonic()
        logger.info(f"[Scrape] Trying {strategy.value} for {request.url} (timeout {timeout:g}s)")

        task = asyncio.ensure_future(client.fetch(request.url, options))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        elapsed = time.monotonic() - start_time

        if not done:
            # Abandon the slow call; it holds no shared state
            task.cancel()
            task.add_done_callback(_discard_result)
            failure = AttemptFailure(
                strategy=strategy,
                reason=FailureReason.TIMEOUT,
                detail=f"No response within {timeout:g}s",
            )
            logger.warning(f"[Scrape] {failure.describe()}")
            return None, failure

        try:
            payload, failure = task.result()
        except asyncio.TimeoutError:
            failure = AttemptFailure(
                strategy=strategy,
                reason=FailureReason.TIMEOUT,
                detail=f"Backend timed out after {elapsed:.2f}s",
            )
            payload = None
        except Exception as e:
            failure = AttemptFailure(
                strategy=strategy,
                reason=classify_error_message(str(e)),
                detail=str(e) or type(e).__name__,
            )
            payload = None

        if payload is not None and not 200 <= payload.status_code < 300:
            failure = AttemptFailure(
                strategy=strategy,
                reason=FailureReason.NON_SUCCESS_STATUS,
                detail=f"HTTP {payload.status_code}",
                status_code=payload.status_code,
            )
            payload = None

        if payload is None and failure is None:
            failure = AttemptFailure(
                strategy=strategy,
                reason=FailureReason.PARSE_ERROR,
                detail="Backend returned no content",
            )

        if failure is not None:
            logger.warning(f"[Scrape] {failure.describe()} after {elapsed:.2f}s")
            return None, failure

        logger.info(f"[Scrape] {strategy.value} succeeded for {request.url} in {elapsed:.2f}s")
        return payload, None

    async def _remember(
        self,
        url: str,
        winner: StrategyIdentifier,
        cached_entry: Optional[StrategyMemoryEntry],
    ) -> None:
        """Record the winning strategy; memory failures never fail the request."""
        if cached_entry and cached_entry.default_strategy == winner:
            return

        if cached_entry:
            prefix = cached_entry.prefix
            notes = f"Auto-discovered after {cached_entry.default_strategy.value} failed"
        else:
            prefix = extract_url_pattern(url)
            notes = "Auto-discovered via universal fallback"

        try:
            await self.store.upsert(prefix, winner, notes)
        except Exception as e:
            logger.warning(f"[Scrape] Failed to update strategy memory for {prefix}: {e}")


def create_orchestrator() -> Orchestrator:
    """Build an orchestrator from settings."""
    return Orchestrator(
        clients=build_scraping_clients(settings),
        store=FilesystemStrategyStore(),
        extractor=create_content_extractor(),
        optimize_for=OptimizeFor(settings.optimize_for.lower()),
    )
