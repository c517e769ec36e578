"""Settings for the API, the execution engine and its HTTP collaborators."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    APP_NAME: str = "Lead Automation Engine"
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./automation.db"
    SQLALCHEMY_ECHO: bool = False

    # Execution Engine
    BATCH_TIMEOUT_SECONDS: float = 30.0
    STEP_TIMEOUT_SECONDS: float = 10.0
    TIME_SAVED_PER_RECORD_HRS: float = 2.2  # manual hours saved per automated lead
    FALLBACK_RETRY_DELAY_SECONDS: float = 3600.0
    SCHEDULING_TIMEZONE: str = "UTC"
    DEFAULT_NEW_STATUS: str = "Contacted"
    DEFAULT_TAG: str = "Automated"
    DEFAULT_TEMPLATE_ID: str = "welcome"

    # Storage retries (idempotent calls only)
    STORAGE_RETRY_ATTEMPTS: int = 2
    STORAGE_RETRY_DELAY_SECONDS: float = 0.5

    # Analytics
    EXECUTION_LOG_LIMIT: int = 50
    NODE_ANALYTICS_WINDOW: int = 200

    # Email transport
    EMAIL_API_URL: str = ""
    EMAIL_API_TOKEN: str = ""
    EMAIL_TIMEOUT_SECONDS: float = 15.0

    # Claude AI Settings (personalized content generation)
    ANTHROPIC_API_KEY: str = ""
    CLAUDE_MODEL: str = "claude-sonnet-4-5-20250929"
    CLAUDE_MAX_TOKENS: int = 1024
    CLAUDE_TEMPERATURE: float = 0.7
    CLAUDE_TIMEOUT: int = 30
    CLAUDE_MAX_RETRIES: int = 2
    CLAUDE_RETRY_DELAY: float = 1.0
    CLAUDE_SYSTEM_PROMPT: str = (
        "You are a B2B outreach copywriter. You rewrite email drafts so they "
        "speak directly to one prospect, using only the facts provided. "
        "Keep the sender's intent, keep it short, and never invent details."
    )

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """ALLOWED_ORIGINS split on commas."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def email_transport_configured(self) -> bool:
        return bool(self.EMAIL_API_URL)


@lru_cache()
def get_settings() -> Settings:
    """Settings read once per process from the environment and ``.env``."""
    return Settings()
