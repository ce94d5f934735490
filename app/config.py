"""FastAPI application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.llm.model_registry import DEFAULT_MODEL, MEMORY_MODEL


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Authentication mode: "easyauth" (Azure App Service SSO headers) or "local"
    auth_mode: str = "easyauth"

    # Key Vault name; when unset, secrets are read from the environment
    key_vault_name: Optional[str] = None

    # PostgreSQL configuration
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_admin_login: str = "pgadmin"
    postgres_password: str = ""
    postgres_database: str = "conversation_memory"
    postgres_sslmode: str = "prefer"
    postgres_create_schema: bool = True

    # Redis message cache (optional)
    redis_host: Optional[str] = None
    redis_port: int = 6380
    redis_password: Optional[str] = None
    redis_ssl: bool = True
    redis_ttl_seconds: int = 1800

    # Completion models (from registry, can be overridden via env)
    default_model: str = DEFAULT_MODEL
    memory_model: str = MEMORY_MODEL  # Summaries and titles

    # Turn settings
    default_system_prompt: str = "You are a helpful assistant."
    completion_timeout_seconds: float = 60.0
    reply_max_tokens: Optional[int] = None
    reply_temperature: Optional[float] = None

    # Memory settings (message counts, not rounds)
    memory_rolling_window_size: int = 10   # Most recent messages sent verbatim
    memory_summarize_threshold: int = 15   # Summarize once total messages exceed this
    memory_summary_max_tokens: int = 300
    memory_summary_temperature: float = 0.3

    # Title settings
    title_max_chars: int = 60
    title_max_tokens: int = 20

    # Observability settings
    tracing_backend: str = "disabled"  # "disabled", "local", "appinsights"
    local_otlp_endpoint: str = "http://localhost:4317"
    appinsights_connection_string: Optional[str] = None
    enable_sensitive_data: bool = False

    # Local testing credentials (auth_mode="local")
    local_test_client_id: str = "00000000-0000-0000-0000-000000000001"
    local_test_username: str = "local_user"

    def get_postgres_connection_string(self, password: str) -> str:
        """Build PostgreSQL connection string.

        Args:
            password: PostgreSQL admin password from Key Vault or environment

        Returns:
            PostgreSQL connection string
        """
        return (
            f"postgresql://{self.postgres_admin_login}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}"
            f"/{self.postgres_database}?sslmode={self.postgres_sslmode}"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
