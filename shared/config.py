"""
Configuration module - Central access point for environment variables.

CRITICAL: Access ALL environment variables through this module.
NEVER use os.getenv() directly in application code.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Session persistence
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection string"
    )
    SESSION_BACKEND: str = Field(
        default="memory",
        description="Session store backend: 'redis' or 'memory'"
    )
    REDIS_MAX_CONNECTIONS: int = Field(default=20)
    REDIS_SOCKET_TIMEOUT: float = Field(
        default=2.0,
        description="Seconds before a Redis command gives up (stores then use memory)"
    )
    SESSION_TTL_SECONDS: int = Field(default=86400)
    CURRENT_AGENT_TTL_SECONDS: int = Field(default=86400)

    # OpenRouter (Unified LLM API)
    OPENROUTER_API_KEY: str = Field(
        default="",
        description="Empty key means the agent is not configured"
    )
    LLM_MODEL: str = Field(
        default="google/gemini-2.5-flash-lite",
        description="Default model for agents without an explicit model (OpenRouter format)"
    )
    LLM_MAX_TOKENS: int = Field(default=1024)
    LLM_REQUEST_TIMEOUT: float = Field(default=25.0)
    LLM_MAX_RETRIES: int = Field(default=2)
    SITE_URL: str = Field(
        default="https://altraflow.com",
        description="Site URL for OpenRouter rankings (optional)"
    )
    SITE_NAME: str = Field(
        default="AltraFlow Assistant",
        description="Site name for OpenRouter rankings (optional)"
    )

    # Tenant configuration
    TENANT_CONFIG_DIR: str = Field(
        default="config",
        description="Directory holding tenant.json and tenants/{id}.json"
    )
    COMPANY_NAME: str = Field(default="")
    ASSISTANT_NAME: str = Field(default="")
    API_BASE_URL: str = Field(
        default="",
        description="Overrides api.baseUrl of every tenant when set"
    )
    SYSTEM_PROMPT_PATH: str = Field(default="")

    # Outbound HTTP
    ERP_REQUEST_TIMEOUT: float = Field(default=10.0)
    HTTP_TOOL_TIMEOUT: float = Field(default=15.0)
    HTTP_TOOL_MAX_BODY_BYTES: int = Field(default=100 * 1024)
    ESCALATION_WEBHOOK_TIMEOUT: float = Field(default=10.0)

    # Inbound webhook / API
    WEBHOOK_SECRET: str = Field(
        default="",
        description="When set, inbound webhooks must carry a signature header"
    )
    PUBLIC_BASE_URL: str = Field(default="http://localhost:8000")
    CORS_ORIGINS: str = Field(default="*")

    # Application Settings
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(
        default="json",
        description="'json' (one object per line) or 'text'"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()
