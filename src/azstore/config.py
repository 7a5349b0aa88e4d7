"""Host configuration loading and validation.

The host hands the plugin a flat JSON object (usually on stdin):

    {
        "env": "AZURE_STORAGE_CONNECTION_STRING",
        "storage-account": "mystorage",
        "storage-account-resource-group": "my-rg",
        "storage-account-subscription-id": "00000000-0000-0000-0000-000000000000",
        "storage-compress-data": true,
        "env-azure-prefix": "DEV_AZURE_",
        "vault": "kv-porter",
        "login-using-device-code": "false",
        "login-using-msi": "false"
    }

Every key is optional. The resulting ``AzureConfig`` is frozen and read-only
for the lifetime of a store.
"""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from azstore.constants import CONNECTION_STRING_ENV, DEFAULT_CONTAINER, DEFAULT_ENV_PREFIX
from azstore.errors import ConfigError

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}


def parse_bool(value: str) -> bool:
    """Interpret a boolean encoded as a string. Unrecognised values are False."""
    return value.strip() in _TRUE_STRINGS


class AzureConfig(BaseModel):
    """Settings shared by the blob store and the Key Vault secrets store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    env_connection_string: str = Field(default="", alias="env")
    storage_account: str = Field(default="", alias="storage-account")
    storage_account_resource_group: str = Field(default="", alias="storage-account-resource-group")
    storage_account_subscription_id: str = Field(
        default="", alias="storage-account-subscription-id"
    )
    storage_container: str = Field(default=DEFAULT_CONTAINER, alias="storage-container")
    storage_compress_data: bool = Field(default=False, alias="storage-compress-data")
    env_azure_prefix: str = Field(default="", alias="env-azure-prefix")
    vault: str = ""
    vault_url: str = Field(default="", alias="vault-url")
    login_with_device_code: str = Field(default="", alias="login-using-device-code")
    login_with_msi: str = Field(default="", alias="login-using-msi")

    @property
    def connection_string_env(self) -> str:
        """Name of the environment variable holding the storage connection string."""
        return self.env_connection_string or CONNECTION_STRING_ENV

    @property
    def env_prefix(self) -> str:
        """Prefix applied to identity environment variables, ``AZURE_`` by default."""
        return self.env_azure_prefix or DEFAULT_ENV_PREFIX

    @property
    def use_device_code(self) -> bool:
        return parse_bool(self.login_with_device_code)

    @property
    def use_msi(self) -> bool:
        return parse_bool(self.login_with_msi)


def load_config(raw: str | bytes) -> AzureConfig:
    """Parse and validate host configuration.

    Empty input yields the defaults. Raises ConfigError if the input is not a
    JSON object or a field has the wrong type.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    if not raw.strip():
        return AzureConfig()

    try:
        data: object = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"configuration is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object at the top level")

    try:
        return AzureConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid azure configuration: {exc}") from exc


def load_config_file(path: Path) -> AzureConfig:
    """Load configuration from a JSON file on disk."""
    try:
        raw = path.read_text()
    except OSError as exc:
        raise ConfigError(f"could not read configuration file {path}: {exc}") from exc
    return load_config(raw)
