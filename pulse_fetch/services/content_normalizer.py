"""Content normalization: raw fetched payloads to bounded text."""
import io
import re
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from pypdf import PdfReader

from ..models.retrieval import NormalizedResult, RawPayload, StrategyIdentifier
from ..utils.logger import logger
from .html_cleaner import HTMLCleaner, html_cleaner

TRUNCATION_MARKER = "\n\n[Content truncated]"


class ContentKind(str, Enum):
    """Normalization variant selected for a payload."""

    MARKUP = "markup"
    STRUCTURED = "structured"
    BINARY = "binary"


MARKUP_TYPES = {"text/html", "application/xhtml+xml"}
BINARY_TYPES = {"application/pdf", "application/octet-stream"}
BINARY_PREFIXES = ("image/", "audio/", "video/", "font/")
# Declared types that say nothing about the body
GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream", "unknown/unknown"}

_HTML_SNIFF = re.compile(r"^\s*(<!doctype\s+html|<html[\s>]|<head[\s>]|<body[\s>])", re.IGNORECASE)
_TAG_SNIFF = re.compile(r"^\s*<([a-z][a-z0-9]*)[\s>/]", re.IGNORECASE)


def media_type(declared_content_type: str) -> str:
    """Strip parameters from a Content-Type header value."""
    return (declared_content_type or "").split(";", 1)[0].strip().lower()


def sniff_content_type(body: str, content: Optional[bytes] = None) -> str:
    """Guess a media type from the first bytes of a payload."""
    if content is not None and content[:5] == b"%PDF-":
        return "application/pdf"

    head = (body or "")[:1024].lstrip("\ufeff")
    stripped = head.lstrip()
    if stripped.startswith("%PDF-"):
        return "application/pdf"
    if stripped.startswith("<?xml"):
        return "text/html" if _HTML_SNIFF.search(head[head.find("?>") + 2:]) else "application/xml"
    if _HTML_SNIFF.match(head) or _TAG_SNIFF.match(head):
        return "text/html"
    if stripped.startswith(("{", "[")):
        return "application/json"
    return "text/plain"


def classify_content(declared_content_type: str, body: str, content: Optional[bytes] = None) -> Tuple[ContentKind, str]:
    """Pick the normalization variant for a payload.

    Returns:
        Tuple of (kind, effective media type)
    """
    mime = media_type(declared_content_type)
    if mime in GENERIC_TYPES:
        mime = sniff_content_type(body, content)

    if mime in MARKUP_TYPES:
        return ContentKind.MARKUP, mime
    if mime in BINARY_TYPES or mime.startswith(BINARY_PREFIXES):
        return ContentKind.BINARY, mime
    # JSON, XML, plain text and anything unrecognized pass through
    return ContentKind.STRUCTURED, mime


def bound_text(text: str, max_chars: Optional[int]) -> Tuple[str, bool]:
    """Cut text to max_chars and append the truncation marker.

    Text that already carries the marker and fits within the bound plus the
    marker is returned unchanged, so bounding twice is a no-op. The flag is
    only set for text longer than the bound.

    Returns:
        Tuple of (text, truncated)
    """
    if max_chars is None or len(text) <= max_chars:
        return text, False
    if text.endswith(TRUNCATION_MARKER) and len(text) <= max_chars + len(TRUNCATION_MARKER):
        return text, True
    return text[:max_chars] + TRUNCATION_MARKER, True


class ContentNormalizer:
    """Converts raw payloads of any content type into bounded text."""

    def __init__(self, cleaner: Optional[HTMLCleaner] = None):
        """Initialize the normalizer.

        Args:
            cleaner: HTML cleaner instance. Defaults to the global html_cleaner
        """
        self.cleaner = cleaner or html_cleaner
        self._handlers: Dict[ContentKind, Callable[..., str]] = {
            ContentKind.MARKUP: self._normalize_markup,
            ContentKind.STRUCTURED: self._normalize_structured,
            ContentKind.BINARY: self._normalize_binary,
        }

    def normalize(
        self,
        payload: RawPayload,
        main_content_only: bool = False,
        max_output_chars: Optional[int] = None,
        base_url: str = "",
        strategy: Optional[StrategyIdentifier] = None,
    ) -> NormalizedResult:
        """Normalize a raw payload.

        Never raises: every payload yields some text.

        Args:
            payload: Raw fetched payload
            main_content_only: For markup, keep only the primary content container
            max_output_chars: Optional bound on the returned text
            base_url: Page URL used to resolve relative links
            strategy: Strategy that produced the payload

        Returns:
            Normalized, bounded result
        """
        kind, mime = classify_content(payload.declared_content_type, payload.body, payload.content)
        handler = self._handlers.get(kind, self._normalize_structured)

        try:
            text = handler(payload, mime=mime, base_url=base_url, main_content_only=main_content_only)
        except Exception as e:
            logger.warning(f"Normalization of {mime or 'unknown'} content failed, passing through: {e}")
            text = payload.body or ""

        text, truncated = bound_text(text, max_output_chars)
        return NormalizedResult(text=text, strategy_used=strategy, truncated=truncated)

    def _normalize_structured(self, payload: RawPayload, **_) -> str:
        # Already machine-parseable; only bounding applies
        return payload.body or ""

    def _normalize_markup(
        self, payload: RawPayload, base_url: str = "", main_content_only: bool = False, **_
    ) -> str:
        return self.cleaner.to_markdown(payload.body, base_url=base_url, main_content_only=main_content_only)

    def _normalize_binary(self, payload: RawPayload, mime: str = "", **_) -> str:
        if mime == "application/pdf" and payload.content:
            try:
                return self._pdf_to_markdown(payload.content)
            except Exception as e:
                logger.warning(f"Failed to parse PDF, returning raw text: {e}")
        return payload.body or ""

    def _pdf_to_markdown(self, content: bytes) -> str:
        """Extract PDF text as one markdown section per page."""
        reader = PdfReader(io.BytesIO(content))
        pages = []
        for number, page in enumerate(reader.pages, 1):
            text = (page.extract_text() or "").strip()
            if text:
                text = re.sub(r"[ \t]+\n", "\n", text)
                pages.append(f"## Page {number}\n\n{text}")
        if not pages:
            raise ValueError("PDF contains no extractable text")
        return "\n\n---\n\n".join(pages)


# Global content normalizer instance
content_normalizer = ContentNormalizer()
