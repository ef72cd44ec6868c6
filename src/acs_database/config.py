# ABOUTME: Application configuration using Pydantic Settings for environment variables
# ABOUTME: Provides type-safe access to wiki endpoints, scrape defaults, backoff and logging settings

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="ACS_DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown environment variables
    )

    # Wiki Configuration
    base_url: str = Field(default="https://scp-wiki.wikidot.com", description="Root URL of the wiki being scraped")
    user_agent: str = Field(
        default="acs-database/0.2 (+https://github.com/Woedenaz/acs_database)",
        description="User-Agent header sent with every request",
    )
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")

    # Output Configuration
    output_dir: Path = Field(default=Path("output"), description="Directory holding the JSON outputs")

    # Scrape Defaults (CLI options override these)
    default_start: int = Field(default=1, ge=0, description="First SCP number to scrape")
    default_end: int = Field(default=7999, ge=0, description="Last SCP number to scrape (inclusive)")
    default_limit: int = Field(default=10, ge=1, description="Maximum number of in-flight requests")
    default_retries: int = Field(default=5, ge=0, description="Retries per request after the first attempt")

    # Backoff Configuration
    backoff_base: float = Field(default=1.0, ge=0, description="Base delay for randomized exponential backoff")
    backoff_max: float = Field(default=30.0, ge=0, description="Upper bound for a single backoff delay")
    backoff_seed: int | None = Field(default=None, description="Seed for backoff jitter (None for system entropy)")

    # Backlink Harvesting
    max_backlink_pages: int = Field(
        default=25, ge=1, description="Maximum listing pages followed per backlink component"
    )

    # Logging Configuration
    log_mode: Literal["interactive", "production"] = Field(default="interactive", description="Logging output mode")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging verbosity level"
    )

    log_file: Path | None = Field(default=None, description="Custom log file path (overrides default)")


# Global config instance - lazy loaded when first accessed
_config_instance: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Creates the config on first access, subsequent calls return the same instance.

    Returns:
        Config: The application configuration instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def reload_config() -> Config:
    """Reload configuration from environment variables.

    Useful for testing or when environment variables change at runtime.

    Returns:
        Config: A fresh configuration instance
    """
    global _config_instance
    _config_instance = Config()
    return _config_instance
