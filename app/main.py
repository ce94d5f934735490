"""FastAPI application for the Conversation Memory API.

This module provides the main FastAPI application with:
- Lifespan management for database connections and completion clients
- CORS middleware
- Route registration
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .infrastructure import AKV, ConversationStore, configure_tracing
from .llm.client import AgentFrameworkCompletionClient
from .llm.factory import create_chat_client
from .llm.model_registry import ModelRegistry
from .memory import CompletionOptions, ConversationManager
from .routes import conversations, messages, user

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _optional_secret(akv: Optional[AKV], name: str, fallback: Optional[str]) -> Optional[str]:
    if akv is None:
        return fallback
    return akv.get_optional(name, fallback)


def build_conversation_manager(
    app_settings: Settings,
    store: ConversationStore,
    registry: ModelRegistry,
) -> ConversationManager:
    """Wire completion clients and memory settings into a ConversationManager."""
    reply_client = AgentFrameworkCompletionClient(
        create_chat_client(registry, app_settings.default_model),
        title_max_tokens=app_settings.title_max_tokens,
    )
    if app_settings.memory_model != app_settings.default_model:
        memory_client = AgentFrameworkCompletionClient(
            create_chat_client(registry, app_settings.memory_model),
            title_max_tokens=app_settings.title_max_tokens,
        )
    else:
        memory_client = reply_client

    return ConversationManager(
        store=store,
        completion=reply_client,
        memory_completion=memory_client,
        rolling_window_size=app_settings.memory_rolling_window_size,
        summarize_threshold=app_settings.memory_summarize_threshold,
        summary_max_tokens=app_settings.memory_summary_max_tokens,
        summary_temperature=app_settings.memory_summary_temperature,
        completion_timeout_seconds=app_settings.completion_timeout_seconds,
        reply_options=CompletionOptions(
            max_output_tokens=app_settings.reply_max_tokens,
            temperature=app_settings.reply_temperature,
        ),
        title_max_chars=app_settings.title_max_chars,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan.

    Loads secrets, connects PostgreSQL (and Redis when configured) on
    startup. On shutdown waits for background memory work, then closes
    connections.
    """
    app_settings = get_settings()

    # Secrets: Key Vault when configured, environment otherwise
    akv: Optional[AKV] = None
    if app_settings.key_vault_name:
        akv = AKV(vault_name=app_settings.key_vault_name)
        akv.load_secrets()
        registry = ModelRegistry.from_key_vault(akv)
        postgres_password = akv.get_secret("POSTGRES-ADMIN-PASSWORD")
    else:
        registry = ModelRegistry.from_env()
        postgres_password = app_settings.postgres_password
        logger.info("Key Vault not configured, using environment settings")

    configure_tracing(
        backend=app_settings.tracing_backend,
        appinsights_connection_string=_optional_secret(
            akv, "APPLICATIONINSIGHTS-CONNECTION-STRING", app_settings.appinsights_connection_string
        ),
        otlp_endpoint=app_settings.local_otlp_endpoint,
        enable_sensitive_data=app_settings.enable_sensitive_data,
    )

    store = ConversationStore()
    await store.initialize(
        postgres_connection_string=app_settings.get_postgres_connection_string(postgres_password),
        redis_host=app_settings.redis_host,
        redis_password=_optional_secret(akv, "REDIS-PASSWORD", app_settings.redis_password),
        redis_port=app_settings.redis_port,
        redis_ssl=app_settings.redis_ssl,
        redis_ttl=app_settings.redis_ttl_seconds,
    )
    if app_settings.postgres_create_schema:
        await store.create_schema()

    manager = build_conversation_manager(app_settings, store, registry)

    # Store in app state for dependency injection
    app.state.conversation_manager = manager
    logger.info(
        f"Conversation memory ready: window={app_settings.memory_rolling_window_size}, "
        f"summarize above {app_settings.memory_summarize_threshold} messages"
    )

    yield

    logger.info("Shutting down application")
    await manager.shutdown()
    await store.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Conversation Memory API",
        description="Multi-turn chat with rolling-window memory and summarization",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(user.router, prefix="/api", tags=["user"])
    app.include_router(messages.router, prefix="/api", tags=["messages"])
    app.include_router(conversations.router, prefix="/api", tags=["conversations"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Create the app instance
app = create_app()
