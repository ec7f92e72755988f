"""
Configuration for the snowball-citation-server.

Uses Pydantic Settings for environment variable support.
All settings can be overridden via environment variables with
the SNOWBALL_ prefix.
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Environment variables are prefixed with SNOWBALL_.
    Example: SNOWBALL_S2_API_KEY=your-key

    Storage:
        Analytics events and session links are kept under:
        ~/.snowball-citation-server/
    """

    model_config = SettingsConfigDict(
        env_prefix="SNOWBALL_",
        extra="ignore",
    )

    # Application info
    APP_NAME: str = "snowball-citation-server"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "WARNING"

    # Storage configuration
    DATA_PATH: Path = Path.home() / ".snowball-citation-server"
    EVENTS_FILE: str = "events.jsonl"
    SESSIONS_FILE: str = "sessions.json"

    # Semantic Scholar API
    S2_API_KEY: Optional[str] = None  # Optional, for higher rate limits
    S2_BASE_URL: str = "https://api.semanticscholar.org/graph/v1"
    REQUEST_TIMEOUT: int = 30  # Seconds, per HTTP request

    # Backpressure and retry
    MAX_CONCURRENT_REQUESTS: int = 5
    MAX_ATTEMPTS: int = 4
    BACKOFF_BASE: float = 1.0
    BACKOFF_FACTOR: float = 2.0
    BACKOFF_MAX: float = 30.0

    # Provider batching
    EDGE_CHUNK_SIZE: int = 20  # Frontier IDs per edge chunk
    EDGE_PAGE_SIZE: int = 1000  # Provider maximum for references/citations
    MAX_EDGE_PAGES: int = 10  # Page ceiling per paper and direction
    LOOKUP_BATCH_SIZE: int = 500  # Provider maximum for /paper/batch

    # Request limits
    MAX_SEED_IDS: int = 7
    MAX_DEPTH: int = 2
    TRAVERSAL_TIMEOUT: float = 300.0  # Seconds for a whole snowball request

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Ensure storage directory exists
        self.DATA_PATH.mkdir(parents=True, exist_ok=True)

    @property
    def events_path(self) -> Path:
        return self.DATA_PATH / self.EVENTS_FILE

    @property
    def sessions_path(self) -> Path:
        return self.DATA_PATH / self.SESSIONS_FILE
