"""Azure OpenAI model catalogue and credential resolution.

Replies and memory work (summaries, titles) may run on different
deployments. Both resolve through one ModelRegistry, built either from
Key Vault secrets or, for local development, from environment variables.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Mapping, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from app.infrastructure.keyvault import AKV


class AzOpenAIEnvSettings(BaseSettings):
    """Azure OpenAI configuration from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    # Local dev: route every model to this one deployment
    azure_openai_deployment_name: str = ""


@dataclass(frozen=True)
class ModelDefinition:
    """A deployable model and the secret holding its API key."""

    name: str
    deployment_name: str
    secret_name: str = "AZURE-OPENAI-API-KEY"


GPT41 = ModelDefinition(name="gpt-4.1", deployment_name="gpt-4.1")
GPT41_MINI = ModelDefinition(name="gpt-4.1-mini", deployment_name="gpt-4.1-mini")

AVAILABLE_MODELS: list[ModelDefinition] = [GPT41, GPT41_MINI]

ModelName = Literal["gpt-4.1", "gpt-4.1-mini"]

DEFAULT_MODEL: ModelName = "gpt-4.1"
# Summaries and titles are short, low-stakes outputs
MEMORY_MODEL: ModelName = "gpt-4.1-mini"


@dataclass(frozen=True)
class ResolvedModelConfig:
    """Everything a chat client needs to call one deployment."""

    deployment_name: str
    endpoint: str
    api_key: str


class ModelRegistry:
    """Resolves model names to deployments and credentials.

    Build once at startup with ``from_key_vault`` or ``from_env``.
    """

    def __init__(
        self,
        endpoint: str,
        api_keys: Mapping[str, str],
        deployment_override: Optional[str] = None,
    ):
        """Initialize registry.

        Args:
            endpoint: Azure OpenAI endpoint
            api_keys: API key per secret name
            deployment_override: Use this deployment for every model

        Raises:
            ValueError: If the endpoint or a model's API key is missing
        """
        if not endpoint:
            raise ValueError("Azure OpenAI endpoint required (set AZURE_OPENAI_ENDPOINT)")

        missing = sorted({m.secret_name for m in AVAILABLE_MODELS if not api_keys.get(m.secret_name)})
        if missing:
            raise ValueError(f"Missing Azure OpenAI API keys: {', '.join(missing)}")

        self.endpoint = endpoint
        self._api_keys = dict(api_keys)
        self._deployment_override = deployment_override
        self._models = {m.name: m for m in AVAILABLE_MODELS}

    @classmethod
    def from_key_vault(cls, akv: "AKV", endpoint: Optional[str] = None) -> "ModelRegistry":
        """Registry whose API keys come from secrets loaded at startup."""
        secret_names = {m.secret_name for m in AVAILABLE_MODELS}
        return cls(
            endpoint=endpoint or AzOpenAIEnvSettings().azure_openai_endpoint,
            api_keys={name: akv.get_secret(name) for name in secret_names},
        )

    @classmethod
    def from_env(cls) -> "ModelRegistry":
        """Registry for local development using AZURE_OPENAI_* variables."""
        env = AzOpenAIEnvSettings()
        return cls(
            endpoint=env.azure_openai_endpoint,
            api_keys={m.secret_name: env.azure_openai_api_key for m in AVAILABLE_MODELS},
            deployment_override=env.azure_openai_deployment_name or None,
        )

    def get(self, model_name: str) -> ResolvedModelConfig:
        """Resolve a model by name.

        Raises:
            KeyError: If the model is not registered
        """
        if model_name not in self._models:
            raise KeyError(f"Unknown model '{model_name}'")
        model = self._models[model_name]
        return ResolvedModelConfig(
            deployment_name=self._deployment_override or model.deployment_name,
            endpoint=self.endpoint,
            api_key=self._api_keys[model.secret_name],
        )

    def list_models(self) -> list[ModelDefinition]:
        return AVAILABLE_MODELS
