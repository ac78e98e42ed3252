"""Strategy memory: which retrieval strategy last worked for a URL prefix."""
import asyncio
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from ..config import settings
from ..models.retrieval import StrategyIdentifier, StrategyMemoryEntry
from ..utils.logger import logger
from ..utils.urls import host_with_port

TABLE_HEADER = """# Scraping Strategy Configuration

This file defines which scraping strategy to use for different URL prefixes (direct, managed-api, proxy-api).
Rows are advisory: delete any of them and the strategy will be relearned on the next successful scrape.

| prefix | default_strategy | notes |
| ------ | ---------------- | ----- |"""


def extract_url_pattern(url: str) -> str:
    """Derive the prefix a successful strategy is remembered under.

    The path is kept up to (not including) its last segment:

    - https://yelp.com/biz/dolly-san-francisco -> yelp.com/biz/
    - https://example.com/blog/2024/article -> example.com/blog/2024/
    - https://example.com/about -> example.com
    """
    try:
        parsed = urlparse(url)
        host = host_with_port(url)
    except ValueError:
        return url
    if not host:
        return url

    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) <= 1:
        return host
    return host + "/" + "/".join(segments[:-1]) + "/"


def prefix_matches(prefix: str, url: str) -> bool:
    """Check whether a stored prefix applies to a URL.

    Matching is case-sensitive. A prefix may be a full URL prefix
    (``https://example.com/docs``) or scheme-less (``example.com/docs/``).
    Host-only prefixes must end on a host boundary, so ``example.com``
    covers ``www.example.com`` and ``api.example.com`` but never
    ``example.community``.
    """
    if not prefix:
        return False
    if url.startswith(prefix):
        return True

    try:
        parsed = urlparse(url)
        host = host_with_port(url)
    except ValueError:
        return False

    if "/" not in prefix:
        return host == prefix or host.endswith("." + prefix)

    location = host + (parsed.path or "/")
    candidates = [location]
    if location.startswith("www."):
        candidates.append(location[4:])
    return any(candidate.startswith(prefix) for candidate in candidates)


def select_entry(entries: List[StrategyMemoryEntry], url: str) -> Optional[StrategyMemoryEntry]:
    """Longest matching prefix wins; ties go to the most recently upserted.

    Args:
        entries: Entries in recency order (last is most recent)
        url: Request URL
    """
    best: Optional[StrategyMemoryEntry] = None
    for entry in entries:
        if not prefix_matches(entry.prefix, url):
            continue
        # >= so that later (more recent) entries win ties
        if best is None or len(entry.prefix) >= len(best.prefix):
            best = entry
    return best


class StrategyStore(ABC):
    """Interface of the strategy memory consumed by the orchestrator."""

    @abstractmethod
    async def load_all(self) -> List[StrategyMemoryEntry]:
        """Return every entry, oldest first."""

    @abstractmethod
    async def upsert(
        self, prefix: str, strategy: StrategyIdentifier, notes: str = ""
    ) -> None:
        """Insert or replace the entry for a prefix."""

    @abstractmethod
    async def delete(self, prefix: str) -> bool:
        """Remove the entry for a prefix. Returns False if it did not exist."""

    async def lookup_entry(self, url: str) -> Optional[StrategyMemoryEntry]:
        """Find the entry that applies to a URL, if any."""
        return select_entry(await self.load_all(), url)

    async def lookup(self, url: str) -> Optional[StrategyIdentifier]:
        """Find the preferred strategy for a URL. None means no preference."""
        entry = await self.lookup_entry(url)
        return entry.default_strategy if entry else None

    @staticmethod
    def _apply_upsert(
        entries: List[StrategyMemoryEntry], entry: StrategyMemoryEntry
    ) -> bool:
        """Upsert in place, moving the entry to the most-recent position.

        Returns:
            False when an identical entry already exists (nothing to write)
        """
        for index, existing in enumerate(entries):
            if existing.prefix != entry.prefix:
                continue
            if existing == entry:
                return False
            del entries[index]
            break
        entries.append(entry)
        return True


class MemoryStrategyStore(StrategyStore):
    """In-process strategy store; nothing is persisted."""

    def __init__(self, entries: Optional[List[StrategyMemoryEntry]] = None):
        self._entries: List[StrategyMemoryEntry] = list(entries or [])
        self._lock = asyncio.Lock()

    async def load_all(self) -> List[StrategyMemoryEntry]:
        return list(self._entries)

    async def upsert(
        self, prefix: str, strategy: StrategyIdentifier, notes: str = ""
    ) -> None:
        async with self._lock:
            self._apply_upsert(
                self._entries,
                StrategyMemoryEntry(prefix=prefix, default_strategy=strategy, notes=notes),
            )

    async def delete(self, prefix: str) -> bool:
        async with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.prefix != prefix]
            return len(self._entries) != before


class FilesystemStrategyStore(StrategyStore):
    """Strategy store backed by a hand-editable markdown table.

    The file is read once per process and cached; every change rewrites the
    whole table atomically.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize the store.

        Args:
            config_path: Markdown table location. Defaults to settings.strategy_config_file
        """
        self.config_path = Path(config_path) if config_path else settings.strategy_config_file
        self._entries: Optional[List[StrategyMemoryEntry]] = None
        self._lock = asyncio.Lock()

    async def load_all(self) -> List[StrategyMemoryEntry]:
        if self._entries is None:
            async with self._lock:
                if self._entries is None:
                    self._entries = self._read_table()
        return list(self._entries)

    async def upsert(
        self, prefix: str, strategy: StrategyIdentifier, notes: str = ""
    ) -> None:
        entry = StrategyMemoryEntry(prefix=prefix, default_strategy=strategy, notes=notes)
        async with self._lock:
            entries = list(self._entries) if self._entries is not None else self._read_table()
            if not self._apply_upsert(entries, entry):
                self._entries = entries
                return
            self._write_table(entries)
            self._entries = entries
        logger.info(f"[Strategy] Remembered {strategy.value} for prefix {prefix}")

    async def delete(self, prefix: str) -> bool:
        async with self._lock:
            entries = list(self._entries) if self._entries is not None else self._read_table()
            remaining = [e for e in entries if e.prefix != prefix]
            if len(remaining) == len(entries):
                self._entries = entries
                return False
            self._write_table(remaining)
            self._entries = remaining
        logger.info(f"[Strategy] Forgot prefix {prefix}")
        return True

    def _read_table(self) -> List[StrategyMemoryEntry]:
        """Read the markdown table; a missing file is an empty table."""
        try:
            content = self.config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        return parse_strategy_table(content)

    def _write_table(self, entries: List[StrategyMemoryEntry]) -> None:
        """Persist the table via a temp file and an atomic rename."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.config_path.parent, prefix=f".{self.config_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(render_strategy_table(entries))
            os.replace(temp_path, self.config_path)
        except BaseException:
            Path(temp_path).unlink(missing_ok=True)
            raise


def parse_strategy_table(content: str) -> List[StrategyMemoryEntry]:
    """Parse the first `| prefix | default_strategy | notes |` table in a document.

    Rows naming unknown strategies are skipped. Within the table a later row
    replaces an earlier one with the same prefix.
    """
    entries: List[StrategyMemoryEntry] = []
    header_found = False

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        if not (trimmed.startswith("|") and trimmed.endswith("|")):
            if header_found:
                break
            continue

        if not header_found:
            lowered = trimmed.lower()
            if "prefix" in lowered and "default_strategy" in lowered:
                header_found = True
            continue

        # Separator row
        if set(trimmed) <= set("|-: "):
            continue

        cells = [cell.strip() for cell in trimmed[1:-1].split("|")]
        if len(cells) < 2 or not cells[0]:
            continue

        strategy = StrategyIdentifier.parse(cells[1])
        if strategy is None:
            logger.warning(f"[Strategy] Skipping row with unknown strategy: {trimmed}")
            continue

        notes = cells[2] if len(cells) > 2 else ""
        StrategyStore._apply_upsert(
            entries, StrategyMemoryEntry(prefix=cells[0], default_strategy=strategy, notes=notes)
        )

    return entries


def render_strategy_table(entries: List[StrategyMemoryEntry]) -> str:
    """Render entries as the markdown table document."""
    rows = [
        f"| {e.prefix} | {e.default_strategy.value} | {e.notes.replace('|', '/')} |"
        for e in entries
    ]
    return "\n".join([TABLE_HEADER, *rows, ""])
