"""Azure Key Vault secret backend.

Implements the ``SecretBackend`` protocol with ``azure-keyvault-secrets``.
A secret identifier may name any vault, so one ``SecretClient`` is kept per
vault URL, all sharing the same credential.
"""

import logging
import threading
from typing import Any

from azure.core.exceptions import ResourceNotFoundError
from azure.keyvault.secrets import SecretClient

from azstore.backends import SecretNotFoundError

logger = logging.getLogger(__name__)


class KeyVaultBackend:
    """SecretBackend that talks to one or more Key Vaults.

    Args:
        credential: Token credential from ``VaultCredentialResolver``.
    """

    def __init__(self, credential: Any) -> None:
        self._credential = credential
        self._clients: dict[str, SecretClient] = {}
        self._lock = threading.Lock()

    def get_secret(self, vault_url: str, name: str, version: str = "") -> str:
        try:
            secret = self._client(vault_url).get_secret(name, version or None)
        except ResourceNotFoundError as exc:
            raise SecretNotFoundError(vault_url, name, version) from exc
        return secret.value or ""

    def set_secret(self, vault_url: str, name: str, value: str) -> None:
        self._client(vault_url).set_secret(name, value)

    def _client(self, vault_url: str) -> SecretClient:
        key = vault_url.rstrip("/")
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                logger.debug("creating secret client for %s", key)
                client = SecretClient(vault_url=key, credential=self._credential)
                self._clients[key] = client
        return client
