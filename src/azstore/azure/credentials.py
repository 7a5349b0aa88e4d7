"""Storage account credential resolution.

Credentials are looked up in order, first success wins:

1. A connection string in the configured environment variable
   (``AZURE_STORAGE_CONNECTION_STRING`` by default).  No network calls.
2. The storage account's access key, fetched through the management API
   while logged in with the Azure CLI.  Needs ``storage-account`` and
   ``storage-account-resource-group``; the subscription comes from
   configuration or from the CLI profile.
3. Otherwise resolution fails, quoting the configuration that was checked.
"""

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from azure.core.exceptions import AzureError, ClientAuthenticationError
from azure.identity import AzureCliCredential
from azure.mgmt.storage import StorageManagementClient

from azstore.azure.profile import current_subscription
from azstore.config import AzureConfig
from azstore.constants import MANAGEMENT_SCOPE, USER_AGENT
from azstore.domain.connection import parse_connection_string
from azstore.errors import CredentialResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageCredential:
    account_name: str
    account_key: str = field(repr=False)

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"

    @property
    def table_url(self) -> str:
        return f"https://{self.account_name}.table.core.windows.net"


class StorageCredentialResolver:
    """Resolves a ``StorageCredential`` for the configured account.

    Args:
        config: Host configuration.
        environ: Environment to read; the process environment by default.
        cli_credential_factory: Builds the Azure CLI identity credential.
        management_client_factory: Builds the storage management client from
            ``(credential, subscription_id)``.
        profile_path: Azure CLI profile used when no subscription is configured.
    """

    def __init__(
        self,
        config: AzureConfig,
        *,
        environ: Mapping[str, str] | None = None,
        cli_credential_factory: Callable[[], Any] = AzureCliCredential,
        management_client_factory: Callable[[Any, str], Any] | None = None,
        profile_path: Path | None = None,
    ) -> None:
        self._config = config
        self._environ = os.environ if environ is None else environ
        self._cli_credential_factory = cli_credential_factory
        self._management_client_factory = management_client_factory or _management_client
        self._profile_path = profile_path

    def resolve(self) -> StorageCredential:
        env_var = self._config.connection_string_env
        conn_string = self._environ.get(env_var, "")
        if conn_string:
            account_name, account_key = parse_connection_string(conn_string, env_var)
            logger.debug("using storage connection string from %s", env_var)
            return StorageCredential(account_name, account_key)

        if not self._config.storage_account and not self._config.storage_account_resource_group:
            raise CredentialResolutionError(
                f"environment variable {env_var} containing the azure storage connection "
                f"string was not set:\n{self._config!r}"
            )

        try:
            return self._from_cli()
        except CredentialResolutionError as exc:
            raise CredentialResolutionError(f"{exc}\n{self._config!r}") from exc

    def _from_cli(self) -> StorageCredential:
        account = self._config.storage_account
        resource_group = self._config.storage_account_resource_group
        if not account:
            raise CredentialResolutionError("account is not set - cannot login with Azure CLI")
        if not resource_group:
            raise CredentialResolutionError(
                "resource-group is not set - cannot login with Azure CLI"
            )

        try:
            credential = self._cli_credential_factory()
            credential.get_token(MANAGEMENT_SCOPE)
        except ClientAuthenticationError as exc:
            raise CredentialResolutionError(f"Failed to login with Azure CLI: {exc}") from exc

        subscription_id = self._config.storage_account_subscription_id
        if not subscription_id:
            subscription_id = current_subscription(self._profile_path)

        logger.info(
            "fetching access key for storage account %s in resource group %s (subscription %s)",
            account,
            resource_group,
            subscription_id,
        )
        try:
            client = self._management_client_factory(credential, subscription_id)
            result = client.storage_accounts.list_keys(resource_group, account)
        except AzureError as exc:
            raise CredentialResolutionError(f"Failed to get storage account keys: {exc}") from exc

        if not result.keys:
            raise CredentialResolutionError(
                f"Failed to get storage account keys: no keys returned for {account}"
            )
        return StorageCredential(account, result.keys[0].value)


def _management_client(credential: Any, subscription_id: str) -> StorageManagementClient:
    return StorageManagementClient(credential, subscription_id, user_agent=USER_AGENT)
