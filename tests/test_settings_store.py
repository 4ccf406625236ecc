"""Tests for settings_store.py - persistent settings storage."""

import json
from unittest.mock import patch

import pytest

from voice_typing.settings_store import SettingsStore


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "voice_typing_settings.json"


def write_settings(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


class TestLoad:
    """Tests for reading the settings file."""

    def test_missing_file_is_empty(self, settings_path):
        """Test that a missing file behaves as empty settings."""
        store = SettingsStore(settings_path)

        assert store.get("stt_provider") is None
        assert store.get("stt_provider", "gemini") == "gemini"
        assert not settings_path.exists()

    def test_loads_existing_values(self, settings_path):
        """Test successful loading of valid JSON settings."""
        write_settings(settings_path, {"stt_provider": "mistral", "history_limit": 10})

        store = SettingsStore(settings_path)

        assert store.get("stt_provider") == "mistral"
        assert store.get("history_limit") == 10

    def test_invalid_json(self, settings_path, caplog):
        """Test that unparsable JSON is treated as empty and logged."""
        settings_path.write_text("{invalid json content", encoding="utf-8")

        store = SettingsStore(settings_path)

        assert store.get("stt_provider") is None
        assert "Could not read saved settings:" in caplog.text

    def test_non_object_content(self, settings_path, caplog):
        """Test that a JSON list at the top level is ignored."""
        write_settings(settings_path, ["not", "a", "dict"])

        store = SettingsStore(settings_path)

        assert store.get("0") is None
        assert "unexpected content" in caplog.text


class TestWrite:
    """Tests for set/remove and persistence."""

    def test_set_persists(self, settings_path):
        """Test that set writes the whole file."""
        store = SettingsStore(settings_path)

        assert store.set("history_enabled", False) is True

        assert json.loads(settings_path.read_text(encoding="utf-8")) == {"history_enabled": False}
        assert SettingsStore(settings_path).get("history_enabled") is False

    def test_creates_parent_directory(self, tmp_path):
        """Test that the settings directory is created on first save."""
        path = tmp_path / "nested" / "dir" / "settings.json"
        store = SettingsStore(path)

        store.set("input_device", 3)

        assert path.is_file()

    def test_get_returns_copy(self, settings_path):
        """Test that mutating a returned value does not change the store."""
        store = SettingsStore(settings_path)
        store.set("transcript_history", [{"id": "1", "text": "hello world", "timestamp": 1}])

        items = store.get("transcript_history")
        items.clear()

        assert len(store.get("transcript_history")) == 1

    def test_remove(self, settings_path):
        """Test removing a key, and that removing a missing key succeeds."""
        store = SettingsStore(settings_path)
        store.set("input_device", 2)

        assert store.remove("input_device") is True
        assert store.remove("input_device") is True
        assert store.get("input_device") is None

    def test_save_failure_returns_false(self, settings_path, caplog):
        """Test that unserializable values are reported, not raised."""
        store = SettingsStore(settings_path)

        assert store.set("bad", object()) is False
        assert "Could not save settings:" in caplog.text


class TestMigration:
    """Tests for moving plaintext API keys into the keyring."""

    @patch("voice_typing.credentials.keyring")
    def test_provider_keys_migrated(self, mock_keyring, settings_path):
        """Test that apiKey fields move to the keyring and vanish from the file."""
        write_settings(
            settings_path,
            {
                "provider_configs": {
                    "openai": {"apiKey": "sk-plaintext-123", "selectedModel": "whisper-1"},
                    "mistral": {"apiKey": ""},
                }
            },
        )

        store = SettingsStore(settings_path)

        mock_keyring.set_password.assert_called_once_with("VoiceTyping", "api_key_openai", "sk-plaintext-123")
        configs = store.get("provider_configs")
        assert configs["openai"] == {"selectedModel": "whisper-1"}
        assert configs["mistral"] == {}
        on_disk = json.loads(settings_path.read_text(encoding="utf-8"))
        assert "apiKey" not in on_disk["provider_configs"]["openai"]

    @patch("voice_typing.credentials.keyring")
    def test_failed_migration_keeps_plaintext(self, mock_keyring, settings_path):
        """Test that a key is kept in the file when the keyring rejects it."""
        mock_keyring.set_password.side_effect = RuntimeError("no backend")
        write_settings(settings_path, {"provider_configs": {"gemini": {"apiKey": "AIza-plaintext"}}})

        store = SettingsStore(settings_path)

        assert store.get("provider_configs")["gemini"]["apiKey"] == "AIza-plaintext"

    @patch("voice_typing.credentials.keyring")
    def test_legacy_google_key_becomes_gemini_key(self, mock_keyring, settings_path):
        """Test that the old single Google key is moved to the Gemini slot."""
        mock_keyring.get_password.return_value = None
        write_settings(settings_path, {"google_api_key": "AIza-legacy-key"})

        store = SettingsStore(settings_path)

        mock_keyring.set_password.assert_called_once_with("VoiceTyping", "api_key_gemini", "AIza-legacy-key")
        assert store.get("google_api_key") is None

    @patch("voice_typing.credentials.keyring")
    def test_legacy_key_dropped_when_gemini_key_exists(self, mock_keyring, settings_path):
        """Test that an existing Gemini key wins over the legacy entry."""
        mock_keyring.get_password.return_value = "AIza-current-key"
        write_settings(settings_path, {"google_api_key": "AIza-legacy-key"})

        store = SettingsStore(settings_path)

        mock_keyring.set_password.assert_not_called()
        assert store.get("google_api_key") is None
        assert "google_api_key" not in json.loads(settings_path.read_text(encoding="utf-8"))

    @patch("voice_typing.credentials.keyring")
    def test_no_migration_leaves_file_untouched(self, mock_keyring, settings_path):
        """Test that settings without plaintext keys are not rewritten."""
        settings_path.write_text('{"stt_provider": "openai"}', encoding="utf-8")

        SettingsStore(settings_path)

        mock_keyring.set_password.assert_not_called()
        assert settings_path.read_text(encoding="utf-8") == '{"stt_provider": "openai"}'
