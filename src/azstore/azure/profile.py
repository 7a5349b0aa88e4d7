"""Read the active subscription from the Azure CLI profile.

The CLI keeps ``~/.azure/azureProfile.json`` up to date on ``az login`` and
``az account set``.  It is written with a UTF-8 byte-order mark, and some
CLI versions write more than one, so BOMs are removed from the start of the
file and from in front of every JSON value before decoding.
"""

import json
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from azstore.constants import AZURE_DIRECTORY, AZURE_PROFILE, BOM, PUBLIC_CLOUD
from azstore.errors import CredentialResolutionError, ProfileParseError

# A BOM directly after a structural character starts an embedded JSON value.
_EMBEDDED_BOM = re.compile(r"([\[{:,]\s*)" + BOM + "+")


class AvailableSubscription(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subscription_id: str = Field(alias="id")
    state: str = ""
    is_default: bool = Field(default=False, alias="isDefault")
    environment_name: str = Field(default="", alias="environmentName")


class AzureProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    subscriptions: list[AvailableSubscription] = []


def default_profile_path() -> Path:
    return Path.home() / AZURE_DIRECTORY / AZURE_PROFILE


def strip_bom(text: str) -> str:
    """Remove leading BOMs and BOMs that precede embedded JSON values."""
    text = text.lstrip(BOM)
    return _EMBEDDED_BOM.sub(r"\1", text)


def parse_profile(text: str) -> AzureProfile:
    """Decode profile JSON. Raises ProfileParseError if it cannot be decoded."""
    try:
        data = json.loads(strip_bom(text))
    except json.JSONDecodeError as exc:
        raise ProfileParseError(f"Failed to decode Azure Profile: {exc}") from exc
    try:
        return AzureProfile.model_validate(data)
    except ValidationError as exc:
        raise ProfileParseError(f"Failed to decode Azure Profile: {exc}") from exc


def current_subscription(path: Path | None = None) -> str:
    """Return the default public-cloud subscription id from the CLI profile."""
    path = path or default_profile_path()
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise CredentialResolutionError(f"Error getting azure profile: {exc}") from exc

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProfileParseError(f"Error reading Azure profile: {exc}") from exc

    profile = parse_profile(text)
    for subscription in profile.subscriptions:
        if subscription.environment_name == PUBLIC_CLOUD and subscription.is_default:
            return subscription.subscription_id

    raise CredentialResolutionError("Failed to get current subscription from cli config")
