"""Language-completion service contract and model configuration.

The agent-framework client lives in ``app.llm.client`` and is imported by
the application entrypoint only, so memory components depend on the
``CompletionService`` protocol alone.
"""

from .base import CompletionService
from .model_registry import AVAILABLE_MODELS, DEFAULT_MODEL, ModelRegistry

__all__ = [
    "AVAILABLE_MODELS",
    "CompletionService",
    "DEFAULT_MODEL",
    "ModelRegistry",
]
