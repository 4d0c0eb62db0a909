"""
Application settings.

All values can be overridden through environment variables or a local `.env`
file. Field names are the environment variable names.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Inference-service deployment (target A)
    EIS_NAME: str = "EIS"
    EIS_URL: str = Field(default="", description="Elasticsearch endpoint for EIS")
    EIS_API_KEY: str = ""
    EIS_MODEL_ID: str = ".elser-2-elastic"

    # Dedicated ML-node deployment (target B)
    ML_NODE_NAME: str = "ML Node"
    ML_NODE_URL: str = Field(default="", description="Elasticsearch endpoint for ML Node")
    ML_NODE_API_KEY: str = ""
    ML_NODE_MODEL_ID: str = ".elser-2-elasticsearch"

    # Search request shape
    SEARCH_INDEX: str = "shakespeare"
    SEARCH_SIZE: int = Field(default=10, ge=1)
    SEARCH_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)
    SEARCH_FALLBACK_TO_MATCH: bool = False

    # Run defaults
    DEFAULT_QUERIES: list[str] = ["love", "death", "king", "sword", "night"]
    DEFAULT_CONCURRENCY: int = Field(default=10, ge=1)
    DEFAULT_TEST_DURATION: int = Field(default=30, gt=0, description="Seconds")

    # Result persistence
    RESULTS_DIR: str = "results"
    SAVE_RESULTS: bool = True

    # API server
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 3000
    APP_RELOAD: bool = False
    APP_DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str | None = None


settings = Settings()
