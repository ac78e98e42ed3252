"""LLM Provider abstraction for Claude and Ollama."""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict
import anthropic
import ollama

from ..config import settings
from ..exceptions import ExtractionError
from ..utils.logger import logger


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def chat(self, messages: List[Dict], system: Optional[str] = None, max_tokens: int = 1024) -> str:
        """Send chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            system: Optional system prompt
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text response

        Raises:
            ExtractionError: if the backend call fails
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return provider name for logging."""
        pass


class ClaudeProvider(LLMProvider):
    """Claude API provider."""

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None):
        """Initialize Claude provider.

        Args:
            model: Model name to use. Defaults to settings.extract_model
            api_key: Anthropic API key. Defaults to settings.anthropic_api_key
        """
        self.client = anthropic.Anthropic(api_key=api_key or settings.anthropic_api_key)
        self.model = model or settings.extract_model

    def chat(self, messages: List[Dict], system: Optional[str] = None, max_tokens: int = 1024) -> str:
        logger.info(f"[LLM] Calling Claude {self.model}...")
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system or "",
                messages=messages
            )
        except anthropic.APIError as e:
            logger.error(f"[LLM] Claude {self.model} failed: {e}")
            raise ExtractionError(f"Claude request failed: {e}") from e

        logger.info(f"[LLM] Claude {self.model} responded")
        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    def get_name(self) -> str:
        """Return provider name for logging."""
        return f"Claude ({self.model})"


class OllamaProvider(LLMProvider):
    """Ollama API provider (local or cloud)."""

    def __init__(self, model: Optional[str] = None, host: Optional[str] = None):
        """Initialize Ollama provider.

        Args:
            model: Model name to use. Defaults to settings.ollama_model
            host: Ollama server host (defaults to settings.ollama_host)
        """
        self.model = model or settings.ollama_model
        self.host = host or settings.ollama_host

        if self.host == "https://ollama.com":
            # Cloud mode - requires API key
            if not settings.ollama_api_key:
                raise ValueError("OLLAMA_API_KEY required for Ollama Cloud")
            self.client = ollama.Client(
                host=self.host,
                headers={"Authorization": f"Bearer {settings.ollama_api_key}"}
            )
            logger.info("[LLM] Initialized Ollama Cloud client")
        else:
            self.client = ollama.Client(host=self.host)
            logger.info(f"[LLM] Initialized Ollama local client at {self.host}")

    def chat(self, messages: List[Dict], system: Optional[str] = None, max_tokens: int = 1024) -> str:
        logger.info(f"[LLM] Calling Ollama {self.model} at {self.host}...")

        if system:
            messages = [{"role": "system", "content": system}] + messages

        try:
            response = self.client.chat(
                model=self.model,
                messages=messages,
                options={"num_predict": max_tokens}
            )
        except (ollama.ResponseError, ConnectionError) as e:
            logger.error(f"[LLM] Ollama {self.model} failed: {e}")
            raise ExtractionError(f"Ollama request failed: {e}") from e

        logger.info(f"[LLM] Ollama {self.model} responded")
        return response.message.content or ""

    def get_name(self) -> str:
        """Return provider name for logging."""
        return f"Ollama ({self.model})"


def get_extract_provider(provider_type: Optional[str] = None) -> Optional[LLMProvider]:
    """Get the LLM provider used for extraction.

    Args:
        provider_type: "claude" or "ollama". Defaults to settings.llm_provider

    Returns:
        LLM provider instance, or None when extraction is not configured
    """
    provider_type = provider_type or settings.llm_provider

    if provider_type == "ollama":
        if not settings.ollama_host:
            logger.info("[LLM] Extraction is not configured: OLLAMA_HOST is empty")
            return None
        return OllamaProvider()

    if not settings.anthropic_api_key:
        logger.info("[LLM] Extraction is not configured: ANTHROPIC_API_KEY is empty")
        return None
    return ClaudeProvider()
