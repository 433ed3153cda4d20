"""
Application configuration using pydantic-settings.

Environment Variables:
    DATABASE_URL: SQLite file holding the lineage store and the API cache
    SLEEPER_API_URL: Base URL of the Sleeper API
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    MAX_TRACE_DEPTH / MAX_VISITED_ASSETS: lineage tracer guards
    TRADE_TREE_MAX_DEPTH: trade-tree resolver guard
"""

import logging
import sys
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Storage
    database_url: str = "dynasty_lineage.db"

    # Upstream API
    sleeper_api_url: str = "https://api.sleeper.app/v1"
    cache_ttl_seconds: int = 604800  # 7 days
    sleeper_fallback_enabled: bool = True

    # Traversal guards
    max_trace_depth: int = 10
    max_visited_assets: int = 500
    trade_tree_max_depth: int = 10
    default_network_depth: int = 2
    max_network_depth: int = 5

    roster_trace_concurrency: int = 5

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


def configure_logging():
    """Configure application logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.is_production:
        formatter = logging.Formatter(
            '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger
