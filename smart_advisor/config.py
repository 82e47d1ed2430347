"""Configuration management using Pydantic Settings"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Advisory service (Gemini)
    gemini_api_key: str = ""
    advisory_api_base: str = "https://generativelanguage.googleapis.com"
    advisory_allowed_domains: List[str] = ["generativelanguage.googleapis.com"]
    advisory_model: str = "gemini-2.5-flash"
    advisory_temperature: float = 0.3
    advisory_timeout_seconds: float = 30.0

    # Retry policy
    advisory_max_attempts: int = 3
    advisory_backoff_base: float = 1.0  # Exponential backoff base in seconds
    advisory_backoff_max: float = 30.0
    advisory_jitter_max: float = 0.5  # Must stay below the backoff base

    # Rate limiter / circuit breaker
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_requests: int = 10
    rate_limit_max_bytes: int = 100_000
    circuit_failure_threshold: int = 3
    circuit_cooldown_seconds: float = 30.0
    circuit_cooldown_multiplier: float = 2.0
    circuit_max_cooldown_seconds: float = 300.0

    # Financial assumptions
    inflation_rate: float = 0.03
    default_portfolio_return: float = 3.0

    # Service
    service_name: str = "smart-advisor"
    log_level: str = "INFO"


settings = Settings()
