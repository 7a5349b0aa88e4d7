"""Secret resolution against Azure Key Vault.

Only the ``secret`` key name is owned by the vault; every other key name
(``env``, ``value``, ``path``, ``command``) is handed to the host resolver
unchanged.

A secret can be requested by full identifier or by bare name.  The
identifier form is tried first; if the vault reports the secret as missing
the value is looked up again by name in the configured vault.  Other
failures on the identifier lookup (authorization, network) are reported
rather than hidden behind the name lookup.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any

from azure.core.exceptions import AzureError

from azstore.azure.identity import VaultCredentialResolver
from azstore.azure.keyvault import KeyVaultBackend
from azstore.backends import SecretBackend, SecretNotFoundError
from azstore.config import AzureConfig
from azstore.constants import SECRET_KEY_NAME, VAULT_URL_TEMPLATE
from azstore.domain.secrets import clean_secret_name, parse_secret_id
from azstore.errors import SecretResolutionError, UnsupportedSecretTypeError
from azstore.host import HostValueResolver

logger = logging.getLogger(__name__)


class SecretsStore:
    """SecretsResolver backed by Azure Key Vault.

    The vault credential is resolved on first use of the vault, so resolving
    non-secret sources never requires an Azure login.

    Args:
        config: Host configuration.
        backend: Ready-made secret backend; skips credential resolution.
        credential_resolver: Resolves the Key Vault token credential.
        backend_factory: Builds a backend from a credential.
        host: Resolver for non-secret value sources.
    """

    def __init__(
        self,
        config: AzureConfig,
        *,
        backend: SecretBackend | None = None,
        credential_resolver: VaultCredentialResolver | None = None,
        backend_factory: Callable[[Any], SecretBackend] = KeyVaultBackend,
        host: HostValueResolver | None = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._credential_resolver = credential_resolver or VaultCredentialResolver(config)
        self._backend_factory = backend_factory
        self._host = host or HostValueResolver()
        self._lock = threading.Lock()
        self.vault_url = config.vault_url or VAULT_URL_TEMPLATE.format(vault=config.vault)

    def connect(self) -> SecretBackend:
        """Return the vault backend, building it on first use."""
        if self._backend is not None:
            return self._backend
        with self._lock:
            if self._backend is None:
                credential = self._credential_resolver.resolve()
                self._backend = self._backend_factory(credential)
        return self._backend

    def resolve(self, key_name: str, key_value: str) -> str:
        if key_name.lower() != SECRET_KEY_NAME:
            return self._host.resolve(key_name, key_value)

        backend = self.connect()
        secret_id = parse_secret_id(key_value)
        if secret_id is not None:
            try:
                return backend.get_secret(secret_id.vault_url, secret_id.name, secret_id.version)
            except SecretNotFoundError as exc:
                logger.debug("could not get secret %s by ID: %s", key_value, exc)
            except AzureError as exc:
                raise SecretResolutionError(
                    f"could not get secret {key_value} by ID: {exc}"
                ) from exc

        secret_name = clean_secret_name(key_value)
        try:
            return backend.get_secret(self.vault_url, secret_name)
        except (SecretNotFoundError, AzureError) as exc:
            raise SecretResolutionError(
                f"could not get secret {self._describe(secret_name, key_value)}: {exc}"
            ) from exc

    def create(self, key_name: str, key_value: str, value: str) -> None:
        """Store ``value`` in the vault under the cleaned ``key_value`` name."""
        if key_name.lower() != SECRET_KEY_NAME:
            raise UnsupportedSecretTypeError(key_name, SECRET_KEY_NAME)

        secret_name = clean_secret_name(key_value)
        backend = self.connect()
        logger.info("Create secret %s in %s", self._describe(secret_name, key_value), self.vault_url)
        try:
            backend.set_secret(self.vault_url, secret_name, value)
        except AzureError as exc:
            raise SecretResolutionError(
                f"failed to set secret {self._describe(secret_name, key_value)} "
                f"in azure-keyvault: {exc}"
            ) from exc

    @staticmethod
    def _describe(secret_name: str, original: str) -> str:
        if secret_name != original:
            return f"{secret_name} (original name was {original})"
        return secret_name
