"""Configuration management for MaqsadM."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    sqlite_db_path: str = Field(default="./data/maqsadm.db", description="SQLite database file path")

    # OpenRouter Configuration
    openrouter_api_key: str | None = Field(default=None, description="OpenRouter API key for LLM access")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    environment: str = Field(default="development", description="Deployment environment name")

    # Localization
    default_locale: Literal["uz", "en"] = Field(
        default="uz", description="Locale used for AI replies and schedule descriptions"
    )

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value

    # AI Model Configuration
    model_id: str = Field(
        default="google/gemini-2.5-flash",
        description="Model ID for OpenRouter",
    )
    model_provider: str | None = Field(
        default=None, description="Pin OpenRouter to a single upstream provider (optional)"
    )
    ai_temperature: float = Field(default=0.7, description="Sampling temperature for the chat assistant")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Rewards
    PERSONAL_TASK_COINS: int = 1  # Silver coins per personal task completion
    DEFAULT_GROUP_TASK_COINS: int = 10

    # AI
    ANALYSIS_HISTORY_LIMIT: int = 20  # Completion records shown to the progress analyst
    CHAT_HISTORY_LIMIT: int = 50  # Chat messages kept in the assistant context

    # Leaderboard
    LEADERBOARD_LIMIT: int = 10

    # Search
    SEARCH_RESULT_LIMIT: int = 5  # Users and groups returned per search

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
