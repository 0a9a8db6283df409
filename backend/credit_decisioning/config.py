"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database (workflow version store)
    DATABASE_URL: str = "sqlite+aiosqlite:///./credit_decisioning.db"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Decision engine
    STEP_BUDGET_MULTIPLIER: int = 4
    VALIDATION_CACHE_SIZE: int = 256

    # Simulation harness
    SIMULATION_MAX_WORKERS: int = 4

    # Import/export
    DEFAULT_EXPORT_FORMAT: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


# Global settings instance
settings = Settings()
