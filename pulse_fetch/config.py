"""Application configuration management."""
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Managed scraping API (Firecrawl) - enables the managed-api strategy
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev"

    # Residential proxy scraping API (BrightData Web Unlocker) - enables proxy-api
    brightdata_api_key: str = ""
    brightdata_zone: str = "web_unlocker1"
    brightdata_base_url: str = "https://api.brightdata.com"

    # Direct fetching needs no credentials but can be switched off
    native_enabled: bool = True
    user_agent: str = "PulseFetch/1.0 (+https://github.com/pulsemcp)"

    # Strategy ordering goal ("cost" or "speed")
    optimize_for: str = "cost"

    # Extraction LLM Provider Selection ("claude" or "ollama")
    llm_provider: str = "claude"
    anthropic_api_key: str = ""
    extract_model: str = "claude-3-5-haiku-20241022"

    # Ollama Configuration
    ollama_host: str = "http://localhost:11434"
    ollama_api_key: str = ""  # Only needed for Ollama Cloud
    ollama_model: str = "llama3.1"

    # Retrieval limits
    default_timeout: int = 30  # Per-attempt timeout in seconds
    default_max_chars: int = 100000

    # Storage Configuration
    strategy_config_path: str = "./data/scraping-strategies.md"
    storage_base_path: str = "./data/resources"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def storage_path(self) -> Path:
        """Get the resolved resource storage path."""
        return Path(self.storage_base_path).expanduser().resolve()

    @property
    def strategy_config_file(self) -> Path:
        """Get the resolved path of the strategy memory table."""
        return Path(self.strategy_config_path).expanduser().resolve()

    @property
    def extraction_enabled(self) -> bool:
        """Whether an extraction backend has what it needs to run."""
        if self.llm_provider == "ollama":
            return bool(self.ollama_host)
        return bool(self.anthropic_api_key)


# Global settings instance
settings = Settings()
