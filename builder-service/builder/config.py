"""
Application configuration management using Pydantic Settings.
Completion provider, rate limiting, retry and generation tunables.
"""
import logging
from typing import Literal, Optional
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from dotenv import load_dotenv

# Load .env first
load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings for the app skeleton generation service"""

    # -------------------------
    # APPLICATION METADATA & RUNTIME
    # -------------------------
    app_name: str = "Expo App Builder Service"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_to_file: bool = False
    log_directory: str = "logs"

    # -------------------------
    # COMPLETION PROVIDER (OpenAI-compatible)
    # -------------------------
    completion_api_url: str = "https://api.mistral.ai/v1"
    completion_model: str = "mistral-small-latest"
    completion_api_key: Optional[str] = None
    completion_timeout: float = 45.0
    completion_temperature: float = 0.1

    # -------------------------
    # RATE LIMITING
    # -------------------------
    rate_limit_requests_per_second: float = 1.0
    rate_limit_tokens_per_minute: int = 500_000
    rate_limit_safety_margin: float = 0.10
    rate_limit_window_seconds: float = 60.0

    # -------------------------
    # RETRIES
    # -------------------------
    retry_max_attempts: int = 3
    retry_base_delay: float = 2.0
    retry_max_delay: float = 16.0

    # -------------------------
    # GENERATION
    # -------------------------
    min_file_content_length: int = 10
    max_chunk_tokens: int = 8000
    default_app_name: str = "ExpoApp"

    # -------------------------
    # VALIDATORS
    # -------------------------
    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return str(v).upper()

    @field_validator('environment', mode='before')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production"]
        if v not in valid_envs:
            logger.warning(f"Invalid environment '{v}', defaulting to 'development'")
            return "development"
        return v

    @property
    def rate_limit_interval_seconds(self) -> float:
        """Minimum gap between two provider requests, safety margin included"""
        return (1.0 / self.rate_limit_requests_per_second) * (1.0 + self.rate_limit_safety_margin)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="APP_",
        validate_default=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    logger.info("Initializing settings...")
    return Settings()


settings = get_settings()
