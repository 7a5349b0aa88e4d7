"""Key Vault credential resolution.

Identity settings come from environment variables named ``{prefix}TENANT_ID``,
``{prefix}CLIENT_ID`` and so on, where the prefix defaults to ``AZURE_``.  They
are collected into an ``IdentityOptions`` value and handed straight to the
``azure-identity`` credential constructors; the process environment is never
modified.

Login method, in order of precedence:

* no identity variables set: managed identity when ``login-using-msi`` is
  true, otherwise the Azure CLI login;
* ``login-using-device-code``: interactive device code flow, which needs
  ``{prefix}TENANT_ID`` and ``{prefix}PORTER_PLUGIN_APP_ID``;
* otherwise a service principal (client secret or certificate) or a
  username/password login, depending on which variables are present.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from azure.identity import (
    AzureCliCredential,
    CertificateCredential,
    ClientSecretCredential,
    DeviceCodeCredential,
    ManagedIdentityCredential,
    UsernamePasswordCredential,
)

from azstore.config import AzureConfig
from azstore.constants import APP_ID_ENV_VAR, IDENTITY_ENV_VARS
from azstore.errors import ConfigurationError, CredentialResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityOptions:
    """Identity settings read from prefixed environment variables."""

    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    certificate_path: str = ""
    certificate_password: str = ""
    username: str = ""
    password: str = ""
    app_id: str = ""

    @classmethod
    def from_environ(cls, prefix: str, environ: Mapping[str, str]) -> "IdentityOptions":
        values = {name.lower(): environ.get(prefix + name, "") for name in IDENTITY_ENV_VARS}
        return cls(app_id=environ.get(prefix + APP_ID_ENV_VAR, ""), **values)

    @property
    def any_set(self) -> bool:
        return any(
            (
                self.tenant_id,
                self.client_id,
                self.client_secret,
                self.certificate_path,
                self.certificate_password,
                self.username,
                self.password,
            )
        )


def validate_login_options(
    options: IdentityOptions, use_device_code: bool, use_msi: bool, prefix: str
) -> list[str]:
    """Return one message per violated login rule. An empty list means valid."""
    problems: list[str] = []
    if use_device_code and use_msi:
        problems.append(
            "login-using-device-code and login-using-msi should not be set at the same time"
        )
    if use_msi and options.any_set:
        problems.append(
            f"{prefix}* environment variables should not be set when trying to log in using MSI"
        )
    if use_device_code:
        if not options.tenant_id:
            problems.append(f"login-using-device-code is set but {prefix}TENANT_ID is not set")
        if not options.app_id:
            problems.append(
                f"login-using-device-code is set but {prefix}{APP_ID_ENV_VAR} is not set"
            )
    return problems


class VaultCredentialResolver:
    """Builds the token credential used to talk to Key Vault."""

    def __init__(self, config: AzureConfig, *, environ: Mapping[str, str] | None = None) -> None:
        self._config = config
        self._environ = os.environ if environ is None else environ

    def options(self) -> IdentityOptions:
        return IdentityOptions.from_environ(self._config.env_prefix, self._environ)

    def resolve(self) -> Any:
        prefix = self._config.env_prefix
        options = self.options()
        use_device_code = self._config.use_device_code
        use_msi = self._config.use_msi

        problems = validate_login_options(options, use_device_code, use_msi, prefix)
        if problems:
            raise ConfigurationError(problems)

        if not options.any_set and not use_device_code:
            if use_msi:
                logger.debug("logging in to key vault with managed identity")
                return self._build("managed identity", ManagedIdentityCredential)
            logger.debug("logging in to key vault with the azure cli")
            return self._build("azure cli", AzureCliCredential)

        if use_device_code:
            logger.debug("logging in to key vault with device code, tenant %s", options.tenant_id)
            return self._build(
                "device flow",
                DeviceCodeCredential,
                tenant_id=options.tenant_id,
                client_id=options.app_id,
            )

        if options.client_secret:
            return self._build(
                "client secret",
                ClientSecretCredential,
                tenant_id=options.tenant_id,
                client_id=options.client_id,
                client_secret=options.client_secret,
            )
        if options.certificate_path:
            return self._build(
                "certificate",
                CertificateCredential,
                tenant_id=options.tenant_id,
                client_id=options.client_id,
                certificate_path=options.certificate_path,
                password=options.certificate_password or None,
            )
        if options.username and options.password:
            return self._build(
                "username and password",
                UsernamePasswordCredential,
                client_id=options.client_id,
                username=options.username,
                password=options.password,
                tenant_id=options.tenant_id,
            )

        raise ConfigurationError(
            f"{prefix}* environment variables are set but do not describe a client secret, "
            "certificate or username/password login"
        )

    @staticmethod
    def _build(method: str, factory: Any, **kwargs: Any) -> Any:
        try:
            return factory(**kwargs)
        except (ValueError, OSError) as exc:
            raise CredentialResolutionError(
                f"Failed to create an azure credential from {method}: {exc}"
            ) from exc
