"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Dict

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE_OPT: str | None = None

# Only load .env if it exists (for local development)
_env_path = Path(".env")
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)
    ENV_FILE_OPT = str(_env_path)


DEFAULT_REQUEST_HEADERS: Dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class Settings(BaseSettings):
    """Application configuration.

    Loads settings from environment variables. In local development, these can be
    provided via a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE_OPT,
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Application
    app_name: str = "n8n Node Catalog"
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Documentation source
    docs_base_url: str = Field(
        default="https://docs.n8n.io/integrations/builtin/",
        description="Root listing page of the node documentation",
    )
    user_agent: str = Field(
        default="n8n-node-catalog-scraper/0.1.0",
        description="User agent sent with every request",
    )
    request_headers: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_REQUEST_HEADERS),
        description="Extra headers sent with every request",
    )

    # Fetch policy
    rate_limit_ms: int = Field(default=1000, description="Delay before each request (ms)")
    timeout_ms: int = Field(default=30000, description="Per-request timeout (ms)")
    max_retries: int = Field(default=3, description="Retries after the first failed attempt")
    retry_delay_ms: int = Field(default=2000, description="Fixed delay between retries (ms)")
    batch_size: int = Field(default=5, description="References fetched concurrently per batch")
    batch_cooldown_ms: int = Field(
        default=2000, description="Pause between consecutive batches (ms)"
    )
    retain_html: bool = Field(
        default=False, description="Keep fetched HTML on raw records for debugging"
    )

    # Normalization and quality
    namespace: str = Field(default="n8n-nodes-base", description="Canonical node namespace")
    min_description_length: int = Field(default=20, description="Minimum description length")
    max_description_length: int = Field(
        default=500, description="Canonical description truncation length"
    )
    quality_score_threshold: int = Field(
        default=70, description="Score under which records are reported as low quality"
    )
    property_drift_threshold: float = Field(
        default=5.0,
        description="Average property count difference flagged by the consistency check",
    )

    # Storage
    artifacts_path: str = Field(default="./artifacts", description="Catalog output directory")


# Global settings instance
settings = Settings()
