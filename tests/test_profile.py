"""Unit tests for reading the Azure CLI profile."""

import json
from pathlib import Path

import pytest

from azstore.azure.profile import current_subscription, parse_profile, strip_bom
from azstore.errors import CredentialResolutionError, ProfileParseError

BOM = "\ufeff"
SUBSCRIPTION_ID = "8b5ab980-0253-40d6-b22a-61b3f9d94491"

PROFILE = {
    "installationId": "5c1a3e54-b8f2-11ea-9f29-00155d5b1c6f",
    "subscriptions": [
        {
            "id": "00000000-0000-0000-0000-000000000001",
            "name": "Gov",
            "state": "Enabled",
            "isDefault": True,
            "environmentName": "AzureUSGovernment",
        },
        {
            "id": "00000000-0000-0000-0000-000000000002",
            "name": "Other",
            "state": "Enabled",
            "isDefault": False,
            "environmentName": "AzureCloud",
        },
        {
            "id": SUBSCRIPTION_ID,
            "name": "Main",
            "state": "Enabled",
            "isDefault": True,
            "environmentName": "AzureCloud",
        },
    ],
}


def _write_profile(path: Path, text: str) -> Path:
    path.write_bytes(text.encode("utf-8"))
    return path


class TestStripBom:
    def test_leading_bom(self):
        """
        Given text starting with a byte-order mark
        When strip_bom is called
        Then the mark is removed
        """
        assert strip_bom(BOM + '{"a": 1}') == '{"a": 1}'

    def test_repeated_leading_boms(self):
        """
        Given text starting with several byte-order marks
        When strip_bom is called
        Then all of them are removed
        """
        assert strip_bom(BOM * 3 + '{"a": 1}') == '{"a": 1}'

    def test_embedded_boms(self):
        """
        Given BOMs in front of nested JSON values
        When strip_bom is called
        Then they are removed and the text decodes
        """
        text = f'{{"a":{BOM}[{BOM}{{"b": 1}},{BOM}{{"c": 2}}]}}'
        assert json.loads(strip_bom(text)) == {"a": [{"b": 1}, {"c": 2}]}

    def test_text_without_bom_is_unchanged(self):
        """
        Given text with no byte-order mark
        When strip_bom is called
        Then it is returned unchanged
        """
        text = json.dumps(PROFILE)
        assert strip_bom(text) == text


class TestParseProfile:
    def test_invalid_json_raises(self):
        """
        Given text that is not JSON
        When parse_profile is called
        Then ProfileParseError is raised
        """
        with pytest.raises(ProfileParseError, match="Failed to decode Azure Profile"):
            parse_profile("not json")

    def test_unexpected_shape_raises(self):
        """
        Given JSON where subscriptions is not a list
        When parse_profile is called
        Then ProfileParseError is raised
        """
        with pytest.raises(ProfileParseError):
            parse_profile('{"subscriptions": "nope"}')


class TestCurrentSubscription:
    def test_profile_without_bom(self, tmp_path: Path):
        """
        Given a profile file without a byte-order mark
        When current_subscription is called
        Then the default public-cloud subscription is returned
        """
        path = _write_profile(tmp_path / "azureProfile.json", json.dumps(PROFILE))
        assert current_subscription(path) == SUBSCRIPTION_ID

    def test_profile_with_bom(self, tmp_path: Path):
        """
        Given a profile file written with a leading byte-order mark
        When current_subscription is called
        Then the default public-cloud subscription is returned
        """
        path = _write_profile(tmp_path / "azureProfile.json", BOM + json.dumps(PROFILE))
        assert current_subscription(path) == SUBSCRIPTION_ID

    def test_profile_with_repeated_bom(self, tmp_path: Path):
        """
        Given a profile file with several leading byte-order marks
        When current_subscription is called
        Then the default public-cloud subscription is returned
        """
        path = _write_profile(
            tmp_path / "azureProfile.json", BOM * 2 + json.dumps(PROFILE)
        )
        assert current_subscription(path) == SUBSCRIPTION_ID

    def test_no_default_public_subscription(self, tmp_path: Path):
        """
        Given a profile whose only default subscription is in another cloud
        When current_subscription is called
        Then CredentialResolutionError is raised
        """
        profile = {"subscriptions": PROFILE["subscriptions"][:2]}
        path = _write_profile(tmp_path / "azureProfile.json", json.dumps(profile))

        with pytest.raises(CredentialResolutionError, match="Failed to get current subscription"):
            current_subscription(path)

    def test_missing_profile(self, tmp_path: Path):
        """
        Given no profile file
        When current_subscription is called
        Then CredentialResolutionError is raised
        """
        with pytest.raises(CredentialResolutionError, match="Error getting azure profile"):
            current_subscription(tmp_path / "missing.json")

    def test_corrupt_profile(self, tmp_path: Path):
        """
        Given a profile file that is not JSON
        When current_subscription is called
        Then ProfileParseError is raised
        """
        path = _write_profile(tmp_path / "azureProfile.json", BOM + "{broken")
        with pytest.raises(ProfileParseError):
            current_subscription(path)

    def test_default_path_is_under_home(self, tmp_path: Path, monkeypatch):
        """
        Given HOME points at a directory holding .azure/azureProfile.json
        When current_subscription is called without a path
        Then that profile is read
        """
        azure_dir = tmp_path / ".azure"
        azure_dir.mkdir()
        _write_profile(azure_dir / "azureProfile.json", BOM + json.dumps(PROFILE))
        monkeypatch.setenv("HOME", str(tmp_path))

        assert current_subscription() == SUBSCRIPTION_ID
