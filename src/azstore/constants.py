"""Application-wide constants."""

APP_NAME = "azstore"
VERSION = "0.1.0"

# Storage credentials
CONNECTION_STRING_ENV = "AZURE_STORAGE_CONNECTION_STRING"
USER_AGENT = "azstore.storage.plugin"
MANAGEMENT_SCOPE = "https://management.azure.com/.default"

# Azure CLI profile
PUBLIC_CLOUD = "AzureCloud"
AZURE_DIRECTORY = ".azure"
AZURE_PROFILE = "azureProfile.json"
BOM = "\ufeff"

# Identity environment variables, without their prefix.
DEFAULT_ENV_PREFIX = "AZURE_"
IDENTITY_ENV_VARS: list[str] = [
    "TENANT_ID",
    "CLIENT_ID",
    "CLIENT_SECRET",
    "CERTIFICATE_PATH",
    "CERTIFICATE_PASSWORD",
    "USERNAME",
    "PASSWORD",
]
APP_ID_ENV_VAR = "PORTER_PLUGIN_APP_ID"

# Blob storage
DEFAULT_CONTAINER = "porter"
MAX_PAYLOAD_SIZE = 65536
TYPE_TAG = "type"
GROUP_TAG = "group"
COMPRESSED_METADATA = "compressed"
POLL_INTERVAL_SECONDS = 1.0
POLL_TIMEOUT_SECONDS = 30.0

# Table storage
TABLE_NAME = "porter"
PARTITION_KEY = "PartitionKey"
ROW_KEY = "RowKey"
DATA_PROPERTY = "data"
SCHEMA_PARTITION = "schema"

# The host reads this record first; its absence triggers the legacy backfill.
SCHEMA_ITEM_TYPE = ""
SCHEMA_NAME = "schema"

# Legacy blob prefix -> item type tag to backfill.
LEGACY_PREFIXES: dict[str, str] = {
    "claims/": "claims",
}

# Key Vault
SECRET_KEY_NAME = "secret"
VAULT_URL_TEMPLATE = "https://{vault}.vault.azure.net"
MAX_SECRET_NAME_LENGTH = 127
SECRET_NAME_PREFIX_LENGTH = 94

# Host value sources
SOURCE_VALUE = "value"
SOURCE_ENV = "env"
SOURCE_PATH = "path"
SOURCE_COMMAND = "command"
