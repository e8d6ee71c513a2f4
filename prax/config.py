# prax/config.py
"""Configuration management for prax."""

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List
import json
import logging


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    # Dialect used when a builder is not told otherwise
    default_dialect: str = "postgresql"

    # Policy compilation
    mssql_policy_schema: str = "Security"

    # Pipelines and bulk operations
    pipeline_max_batch_size: int = 1000
    bulk_insert_batch_size: int = 1000

    # Full-text search
    search_score_alias: str = "search_score"

    # Validation
    strict_validation: bool = True

    # Identifier quoting
    extra_reserved_words: str = Field(
        default="[]",
        description="JSON array of additional words that must be quoted"
    )

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

    class Config:
        env_prefix = "PRAX_"

    def get_extra_reserved_words(self) -> List[str]:
        """Parse extra reserved words from JSON.

        Returns:
            Lower-cased list of reserved words.
        """
        try:
            words = json.loads(self.extra_reserved_words)
        except json.JSONDecodeError:
            return []
        if not isinstance(words, list):
            return []
        return [str(w).lower() for w in words]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging for applications embedding prax.

    Args:
        settings: Settings to read the level and format from.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format
    )
