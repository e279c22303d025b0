"""gemini-research configuration — loaded from .env via pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from gemini_research.errors import ConfigError


class ResearchSettings(BaseSettings):
    """All gemini-research configuration. Reads from .env file and environment variables."""

    # --- Gemini API ---
    gemini_api_key: str = Field(
        default="",
        description="API key sent as x-goog-api-key on every request",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        description="Per-request HTTP timeout",
    )

    # --- Models ---
    deep_research_agent: str = Field(
        default="deep-research-pro-preview-12-2025",
        description="Agent that executes the background research interaction",
    )
    plan_model: str = Field(
        default="gemini-3-flash-preview",
        description="Primary model used to draft the research plan",
    )
    fallback_model: str = Field(
        default="gemini-2.0-flash",
        description="Tried once when the plan model is unavailable (404 / 5xx)",
    )

    # --- Polling ---
    poll_interval_seconds: float = Field(default=10.0, description="Fixed delay between polls")
    timeout_seconds: float = Field(default=3600.0, description="Wall-clock polling budget")

    # --- Reports ---
    report_dir: Path = Field(default=Path("."), description="Where finished reports are written")
    slug_max_length: int = Field(default=50, description="Max length of the topic slug in filenames")

    # --- Traces ---
    trace_dir: Path = Field(
        default=Path.home() / ".gemini-research" / "traces",
        description="Synapse JSONL traces, one file per job",
    )

    # --- Logging ---
    log_level: str = Field(default="WARNING", description="Log level")
    log_format: str = Field(
        default="console",
        description="Log format: 'console' for dev, 'json' for production",
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def require_api_key(config: ResearchSettings | None = None) -> str:
    """Return the configured API key or raise ConfigError when it is missing."""
    key = (config or settings).gemini_api_key.strip()
    if not key:
        raise ConfigError("GEMINI_API_KEY is not set (export it or add it to .env)")
    return key


# Singleton — import this everywhere
settings = ResearchSettings()
