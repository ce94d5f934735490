"""Startup secret loading from Azure Key Vault."""

import logging
from typing import Iterable, Optional

from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient

logger = logging.getLogger(__name__)

# The service cannot start without these
REQUIRED_SECRETS = (
    "POSTGRES-ADMIN-PASSWORD",
    "AZURE-OPENAI-API-KEY",
)
# These only enable the message cache and App Insights export
OPTIONAL_SECRETS = (
    "REDIS-PASSWORD",
    "APPLICATIONINSIGHTS-CONNECTION-STRING",
)


class AKV:
    """Secrets read from one Key Vault at startup and held in memory.

    Authenticates with DefaultAzureCredential (Azure CLI locally, managed
    identity when deployed). A rotated secret is picked up on restart.
    """

    def __init__(self, vault_name: str):
        if not vault_name:
            raise ValueError("vault_name is required")

        self.vault_name = vault_name
        self._client = SecretClient(
            vault_url=f"https://{vault_name}.vault.azure.net/",
            credential=DefaultAzureCredential(),
        )
        self._secrets: dict[str, str] = {}

    def load_secrets(
        self,
        required: Iterable[str] = REQUIRED_SECRETS,
        optional: Iterable[str] = OPTIONAL_SECRETS,
    ) -> None:
        """Fetch secrets into memory.

        Args:
            required: Secret names that must exist and have a value
            optional: Secret names that are skipped with a warning if absent

        Raises:
            ValueError: If a required secret is missing or empty
        """
        for name in required:
            try:
                value = self._fetch(name)
            except AzureError as e:
                raise ValueError(f"Failed to load secret '{name}': {e}") from e
            if value is None:
                raise ValueError(f"Secret '{name}' has no value")
            self._secrets[name] = value

        for name in optional:
            try:
                value = self._fetch(name)
            except AzureError as e:
                logger.warning(f"Optional secret '{name}' not loaded: {e}")
                continue
            if value is not None:
                self._secrets[name] = value

        logger.info(f"Loaded {len(self._secrets)} secrets from {self.vault_name}")

    def _fetch(self, name: str) -> Optional[str]:
        return self._client.get_secret(name).value

    def get_secret(self, name: str) -> str:
        """Get a loaded secret.

        Raises:
            KeyError: If the secret was not loaded
        """
        if name not in self._secrets:
            raise KeyError(f"Secret '{name}' was not loaded at startup")
        return self._secrets[name]

    def get_optional(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._secrets.get(name, default)
