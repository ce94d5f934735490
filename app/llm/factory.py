"""Chat client factory."""

from agent_framework.azure import AzureOpenAIChatClient

from .model_registry import ModelRegistry


def create_chat_client(registry: ModelRegistry, model_name: str) -> AzureOpenAIChatClient:
    """Create an Azure OpenAI chat client for a registered model.

    Raises:
        KeyError: If the model is not registered
    """
    resolved = registry.get(model_name)
    return AzureOpenAIChatClient(
        api_key=resolved.api_key,
        endpoint=resolved.endpoint,
        deployment_name=resolved.deployment_name,
    )
