"""Shared configuration for all services."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Redis Configuration
    redis_url: str = "redis://localhost:6379"
    redis_cache_prefix: str = "generation_cache"
    redis_rate_limit_prefix: str = "generation_rate"

    # MongoDB Configuration
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db_name: str = "document_engine"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    # Generation Service
    generation_api_url: str = "https://api.anthropic.com/v1/messages"
    generation_api_key: str = ""
    generation_api_version: str = "2023-06-01"
    generation_model: str = "claude-sonnet-4-5"
    generation_max_tokens: int = 4096
    generation_timeout: int = 60
    generation_cache_ttl_hours: int = 168  # 7 days

    # Rate Limiting
    rate_limit_requests: int = 50
    rate_limit_window: int = 60  # seconds
    rate_limit_max_wait: float = 30.0

    # Worker Configuration
    worker_poll_interval: float = 2.0
    stale_job_timeout: int = 900  # seconds without a checkpoint write
    housekeeping_interval: int = 300
    max_generation_attempts: int = 5
    auto_retry_enabled: bool = True
    retry_base_delay: float = 2.0  # seconds before the first automatic retry
    retry_max_delay: float = 60.0
    checkpoint_retention_days: int = 7
    job_retention_days: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
