"""Application configuration settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Application
    app_name: str = "Plan Search Engine"
    debug: bool = False

    # Logging
    log_json: bool = True  # False renders human-readable console output

    # Optimization config (YAML). Empty means the bundled optimization_config.yaml
    optimization_config_path: str = ""

    # Request defaults
    default_population_size: int = 100
    default_time_budget_seconds: float | None = None  # None = no wall-clock budget
    default_seed: int | None = None  # Set for reproducible runs outside tests

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "PLANSEARCH_"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
