"""Unit tests for secret lookup."""

import sys
from unittest.mock import MagicMock, patch

from config.secrets import get_provider_api_key, get_provider_api_keys, get_secret


class TestSecrets:
    """Tests for environment and Secret Manager lookup."""

    def test_emulator_reads_environment(self, monkeypatch):
        monkeypatch.setenv("FUNCTIONS_EMULATOR", "true")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

        assert get_secret("OPENAI_API_KEY") == "sk-env"

    def test_blank_value_is_none(self, monkeypatch):
        monkeypatch.setenv("FUNCTIONS_EMULATOR", "true")
        monkeypatch.setenv("GOOGLE_AI_API_KEY", "")

        assert get_secret("GOOGLE_AI_API_KEY") is None

    def test_secret_manager_used_in_production(self, monkeypatch):
        monkeypatch.delenv("FUNCTIONS_EMULATOR", raising=False)
        monkeypatch.delenv("FIRESTORE_EMULATOR_HOST", raising=False)
        monkeypatch.setenv("GCLOUD_PROJECT", "costscan-prod")

        client = MagicMock()
        client.access_secret_version.return_value.payload.data = b"sk-managed"
        secretmanager = MagicMock()
        secretmanager.SecretManagerServiceClient.return_value = client

        with patch.dict(sys.modules, {"google.cloud.secretmanager": secretmanager}), \
                patch("google.cloud.secretmanager", secretmanager, create=True):
            assert get_secret("ANTHROPIC_API_KEY") == "sk-managed"

        client.access_secret_version.assert_called_once_with(
            request={"name": "projects/costscan-prod/secrets/ANTHROPIC_API_KEY/versions/latest"}
        )

    def test_provider_keys(self, monkeypatch):
        monkeypatch.setenv("FUNCTIONS_EMULATOR", "true")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_AI_API_KEY", raising=False)

        assert get_provider_api_key(" Anthropic ") == "sk-ant"
        assert get_provider_api_key("mistral") is None
        assert get_provider_api_keys() == {"openai": None, "anthropic": "sk-ant", "google": None}
