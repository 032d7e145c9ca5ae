from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )
    # Application
    app_name: str = "Integration Hub"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False)

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./integration_hub.db"
    )
    database_echo: bool = Field(default=False)

    # Provider endpoints
    airtable_base_url: str = Field(default="https://api.airtable.com")
    notion_base_url: str = Field(default="https://api.notion.com/v1")
    notion_version: str = Field(default="2022-06-28")
    stripe_base_url: str = Field(default="https://api.stripe.com/v1")
    slack_base_url: str = Field(default="https://slack.com/api/")
    http_timeout: float = Field(default=30.0)  # seconds

    # Notifications
    slack_bot_token: Optional[str] = Field(default=None)
    resend_api_key: Optional[str] = Field(default=None)
    email_from: str = Field(default="Integration Hub <noreply@example.com>")

    # Workflow engine
    workflow_step_timeout: float = Field(default=60.0)  # seconds
    workflow_max_condition_depth: int = Field(default=8)
    workflow_retry_attempts: int = Field(default=3)
    workflow_retry_delay: float = Field(default=1.0)  # seconds
    workflow_retry_max_delay: float = Field(default=30.0)

    # Metrics
    metrics_buffer_size: int = Field(default=1000)

    # CORS
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"]
    )

    # Logging
    log_level: str = Field(default="INFO")


# Environment-specific configurations
class DevelopmentConfig(Settings):
    debug: bool = True
    database_echo: bool = True
    log_level: str = "DEBUG"


class ProductionConfig(Settings):
    debug: bool = False
    database_echo: bool = False
    log_level: str = "WARNING"


class TestingConfig(Settings):
    database_url: str = "sqlite+aiosqlite:///:memory:"
    workflow_retry_delay: float = 0.0
    workflow_retry_max_delay: float = 0.0


def get_settings() -> Settings:
    """Factory function to get settings based on environment"""
    env = os.getenv("ENVIRONMENT", "development").lower()

    if env == "production":
        return ProductionConfig()
    elif env == "testing":
        return TestingConfig()
    else:
        return DevelopmentConfig()
