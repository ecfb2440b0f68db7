"""Server configuration"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str | None = None
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000
    create_tables: bool = False  # Create missing tables on startup instead of relying on external migrations

    # Authentication settings
    auth_required: bool = False  # Set to True to reject requests without X-User-Id
    default_user_id: str = "local-user"

    # Provider credentials (empty string = provider not configured)
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""
    groq_api_key: str = ""
    mistral_api_key: str = ""

    # Optimizer settings
    provider_timeout_seconds: float = 30.0
    deep_mode_max_workers: int = 4
    provider_retry_attempts: int = 1  # Retries per failed provider call before skipping

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    """Get the Settings instance (dependency injection for FastAPI)"""
    return settings
