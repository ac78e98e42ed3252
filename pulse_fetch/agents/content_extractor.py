"""Content extractor: answers a query about already-fetched page text."""
import asyncio
from typing import Optional

from ..services.llm_provider import LLMProvider, get_extract_provider
from ..utils.logger import logger

SYSTEM_PROMPT = (
    "You extract information from web page content. Answer the user's request "
    "using only the provided content. If the content does not contain the answer, "
    "say so plainly. Be concise and do not add commentary about the page itself."
)


class ContentExtractor:
    """Runs a targeted extraction pass over normalized page text."""

    def __init__(
        self,
        provider: LLMProvider,
        max_input_chars: int = 100000,
        max_tokens: int = 2048,
    ):
        """Initialize the content extractor.

        Args:
            provider: LLM provider used to answer queries
            max_input_chars: Page text beyond this length is not sent to the model
            max_tokens: Maximum tokens in the answer
        """
        self.provider = provider
        self.max_input_chars = max_input_chars
        self.max_tokens = max_tokens

    async def extract(self, text: str, query: str) -> tuple[Optional[str], Optional[str]]:
        """Answer a query about page content.

        Args:
            text: Normalized page text
            query: Natural-language extraction query

        Returns:
            Tuple of (answer, error_message)
            If successful, returns (answer, None)
            If failed, returns (None, error_message)
        """
        if not query or not query.strip():
            return None, "Extraction query is empty"

        prompt = self._build_prompt(text, query)

        try:
            answer = await asyncio.to_thread(
                self.provider.chat,
                [{"role": "user", "content": prompt}],
                SYSTEM_PROMPT,
                self.max_tokens,
            )
        except Exception as e:
            logger.warning(f"[Extract] {self.provider.get_name()} failed: {e}")
            return None, f"Error extracting content: {e}"

        answer = (answer or "").strip()
        if not answer:
            return None, f"{self.provider.get_name()} returned an empty answer"

        return answer, None

    def _build_prompt(self, text: str, query: str) -> str:
        """Build the extraction prompt.

        Args:
            text: Page content
            query: What to extract

        Returns:
            Formatted prompt
        """
        if len(text) > self.max_input_chars:
            text = text[:self.max_input_chars] + "\n... (truncated)"

        return f"""<content>
{text}
</content>

{query}"""


def create_content_extractor() -> Optional[ContentExtractor]:
    """Build the extractor from settings, or None when extraction is not configured."""
    provider = get_extract_provider()
    return ContentExtractor(provider) if provider else None
