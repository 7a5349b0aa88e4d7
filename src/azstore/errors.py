"""Exception hierarchy for azstore.

    AzstoreError (base)
    ├── ConfigError (host configuration could not be parsed)
    ├── ConfigurationError (contradictory or missing login settings)
    ├── CredentialResolutionError (a credential step failed)
    │   ├── MalformedConnectionStringError
    │   └── ProfileParseError
    ├── RecordNotFoundError
    ├── PayloadTooLargeError
    ├── IndexTimeoutError
    ├── MigrationError
    ├── SecretResolutionError
    ├── UnsupportedSecretTypeError
    └── InvalidValueSourceError
"""


class AzstoreError(Exception):
    """Base exception for all azstore errors."""


class ConfigError(AzstoreError):
    """Raised when the host configuration is not valid JSON or fails validation."""


class ConfigurationError(AzstoreError):
    """Raised before any network call when login settings are contradictory.

    Attributes:
        problems: One message per violated rule.
    """

    def __init__(self, problems: list[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = problems
        super().__init__("\n".join(problems))


class CredentialResolutionError(AzstoreError):
    """Raised when a step of a credential chain fails."""


class MalformedConnectionStringError(CredentialResolutionError):
    """Raised when a connection string lacks AccountName or AccountKey."""

    def __init__(self, env_var: str = "AZURE_STORAGE_CONNECTION_STRING") -> None:
        self.env_var = env_var
        super().__init__(
            f"unexpected format for {env_var}, could not find "
            "AccountName=NAME and AccountKey=KEY in it"
        )


class ProfileParseError(CredentialResolutionError):
    """Raised when the Azure CLI profile cannot be decoded."""


class RecordNotFoundError(AzstoreError):
    """Raised when a record does not exist in the backend.

    Attributes:
        item_type: Item type that was requested.
        name: Item name that was requested.
    """

    def __init__(self, item_type: str, name: str) -> None:
        self.item_type = item_type
        self.name = name
        super().__init__(f"File does not exist: {item_type}/{name}")


class PayloadTooLargeError(AzstoreError):
    """Raised when a payload exceeds the storage size ceiling."""

    def __init__(
        self,
        item_type: str,
        group: str,
        name: str,
        size: int,
        limit: int,
        storage: str = "blob",
    ) -> None:
        self.item_type = item_type
        self.group = group
        self.name = name
        self.size = size
        self.limit = limit
        super().__init__(
            f"Data exceeds maximum length for {storage} storage for item: "
            f"{item_type}/ group={group!r} {name} length: {size} (limit {limit})"
        )


class IndexTimeoutError(AzstoreError):
    """Raised when a saved item does not become visible in the tag index in time.

    The payload itself is stored; the item may exist but cannot yet be found
    through ``list`` or ``count``.
    """

    def __init__(self, item_type: str, group: str, name: str, timeout: float) -> None:
        self.item_type = item_type
        self.group = group
        self.name = name
        self.timeout = timeout
        super().__init__(
            f"item {item_type}/{name} (group={group!r}) was stored but did not appear "
            f"in the tag index within {timeout:g}s; it may exist but is not yet discoverable"
        )


class MigrationError(AzstoreError):
    """Aggregate of every failure raised while retagging legacy records.

    Attributes:
        errors: The individual failures, in completion order.
    """

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = errors
        lines = [f"{len(errors)} error(s) occurred while migrating records:"]
        lines.extend(f"  * {err}" for err in errors)
        super().__init__("\n".join(lines))


class SecretResolutionError(AzstoreError):
    """Raised when a secret cannot be read from or written to the vault."""


class UnsupportedSecretTypeError(AzstoreError):
    """Raised when a secret is created with a key name other than ``secret``."""

    def __init__(self, key_name: str, supported: str) -> None:
        self.key_name = key_name
        super().__init__(f"unsupported secret type: {key_name}. Only {supported} is supported")


class InvalidValueSourceError(AzstoreError):
    """Raised by the host resolver for an unknown value source."""

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"invalid value source: {source}")
