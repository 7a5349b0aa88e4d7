"""Plugin registry.

Each plugin key maps to a factory that builds the store for that capability
from the host configuration.  The host owns the transport; it looks up a
factory here and calls the returned store through ``CrudStore`` or
``SecretsResolver``.
"""

from collections.abc import Callable
from typing import Any

from azstore.blob_store import BlobStore
from azstore.config import AzureConfig, load_config
from azstore.contracts import CrudStore, SecretsResolver
from azstore.secrets_store import SecretsStore
from azstore.table_store import TableStore

STORAGE_PLUGIN = "storage.azure.blob"
TABLE_STORAGE_PLUGIN = "storage.azure.table"
SECRETS_PLUGIN = "secrets.azure.keyvault"


def new_storage(config: AzureConfig) -> CrudStore:
    return BlobStore(config)


def new_table_storage(config: AzureConfig) -> CrudStore:
    return TableStore(config)


def new_secrets(config: AzureConfig) -> SecretsResolver:
    return SecretsStore(config)


PLUGINS: dict[str, Callable[[AzureConfig], Any]] = {
    STORAGE_PLUGIN: new_storage,
    TABLE_STORAGE_PLUGIN: new_table_storage,
    SECRETS_PLUGIN: new_secrets,
}


def create_plugin(key: str, raw_config: str | bytes = "") -> Any:
    """Build the store registered under ``key`` from raw host configuration.

    Raises KeyError for an unknown key and ConfigError for bad configuration.
    """
    try:
        factory = PLUGINS[key]
    except KeyError:
        known = ", ".join(sorted(PLUGINS))
        raise KeyError(f"unknown plugin {key!r}, expected one of: {known}") from None
    return factory(load_config(raw_config))
