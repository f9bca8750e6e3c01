"""
Configuration management using Pydantic Settings.
Reads from environment variables and an optional .env file.
"""

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    model_config = ConfigDict(env_file=".env", case_sensitive=False, populate_by_name=True)

    # LLM fallback (general questions only)
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    litellm_model: str = Field(default="gpt-4o-mini", alias="LITELLM_MODEL")
    llm_timeout_seconds: float = Field(default=30, alias="LLM_TIMEOUT_SECONDS")

    # Session memory controls
    max_sessions: int = Field(default=1000, alias="MAX_SESSIONS")
    max_history: int = Field(default=10, alias="MAX_HISTORY")
    session_ttl_seconds: int = Field(default=1800, alias="SESSION_TTL_SECONDS")

    # Identity verification
    max_email_attempts: int = Field(default=3, alias="MAX_EMAIL_ATTEMPTS")
    company_email_domain: str = Field(default="winfomi.com", alias="COMPANY_EMAIL_DOMAIN")

    # Business rules
    allow_backdated_leave: bool = Field(default=False, alias="ALLOW_BACKDATED_LEAVE")
    wfh_block_holidays: bool = Field(default=True, alias="WFH_BLOCK_HOLIDAYS")

    # Snowflake Configuration (record store); empty account means in-memory demo store
    snowflake_account: str = Field(default="", alias="SNOWFLAKE_ACCOUNT")
    snowflake_user: str = Field(default="", alias="SNOWFLAKE_USER")
    snowflake_password: str = Field(default="", alias="SNOWFLAKE_PASSWORD")
    snowflake_warehouse: str = Field(default="", alias="SNOWFLAKE_WAREHOUSE")
    snowflake_database: str = Field(default="", alias="SNOWFLAKE_DATABASE")
    snowflake_schema: str = Field(default="", alias="SNOWFLAKE_SCHEMA")

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Circuit Breaker Configuration
    circuit_breaker_failure_threshold: int = Field(
        default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD"
    )
    circuit_breaker_timeout: int = Field(default=60, alias="CIRCUIT_BREAKER_TIMEOUT")


# Global settings instance
settings = Settings()
