"""Persistent settings storage for voice-typing."""

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any

from voice_typing import credentials
from voice_typing.config import DATA_DIR
from voice_typing.models import ProviderId

logger = logging.getLogger(__name__)

SETTINGS_FILE = DATA_DIR / "voice_typing_settings.json"

# Settings keys
PROVIDER_CONFIGS = "provider_configs"
STT_PROVIDER = "stt_provider"
TRANSCRIPT_HISTORY = "transcript_history"
HISTORY_ENABLED = "history_enabled"
HISTORY_LIMIT = "history_limit"
INPUT_DEVICE = "input_device"
LEGACY_GOOGLE_KEY = "google_api_key"


class SettingsStore:
    """JSON-backed key-value store.

    The file is read once on construction and rewritten in full on every
    change. Values handed out are copies, so callers cannot mutate the
    in-memory state behind the store's back.
    """

    def __init__(self, path: Path | None = None):
        self.path = path or SETTINGS_FILE
        self._lock = threading.Lock()
        self._data = self._load()
        if _migrate_secure_settings(self._data):
            self._save()

    def _load(self) -> dict[str, Any]:
        try:
            if self.path.is_file():
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    return data
                logger.error(f"Ignoring settings file with unexpected content: {self.path}")
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            # OSError: File access errors
            # UnicodeDecodeError: Invalid UTF-8 encoding
            # JSONDecodeError: Invalid JSON format
            logger.error(f"Could not read saved settings: {e}")
        return {}

    def _save(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
            return True
        except (OSError, UnicodeEncodeError, TypeError, ValueError) as e:
            # OSError: File/directory write errors
            # TypeError/ValueError: Non-serializable values
            logger.error(f"Could not save settings: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> bool:
        """Store a value and persist. Returns True on success, False otherwise."""
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            return self._save()

    def remove(self, key: str) -> bool:
        with self._lock:
            if key not in self._data:
                return True
            del self._data[key]
            return self._save()


def _migrate_secure_settings(settings: dict[str, Any]) -> bool:
    """Move plaintext API keys from the settings dict into the keyring.

    Handles per-provider ``apiKey`` fields inside ``provider_configs`` and the
    single ``google_api_key`` entry of older versions, which becomes the
    Gemini key. Entries are removed only after a successful migration.

    Args:
        settings: Settings dictionary (modified in-place)

    Returns:
        True if the dictionary changed and should be written back
    """
    changed = False

    configs = settings.get(PROVIDER_CONFIGS)
    if isinstance(configs, dict):
        for provider_key, config in configs.items():
            if not isinstance(config, dict) or "apiKey" not in config:
                continue
            plaintext_value = config["apiKey"]
            try:
                provider_id = ProviderId(provider_key)
            except ValueError:
                continue
            if isinstance(plaintext_value, str) and plaintext_value.strip():
                name = credentials.api_key_name(provider_id)
                if not credentials.migrate_from_plaintext(plaintext_value.strip(), name):
                    continue
                logger.info(f"Migrated {provider_key} API key to secure storage")
            del config["apiKey"]
            changed = True

    legacy = settings.get(LEGACY_GOOGLE_KEY)
    if LEGACY_GOOGLE_KEY in settings:
        if isinstance(legacy, str) and legacy.strip() and not credentials.load_api_key(ProviderId.GEMINI):
            name = credentials.api_key_name(ProviderId.GEMINI)
            if credentials.migrate_from_plaintext(legacy.strip(), name):
                del settings[LEGACY_GOOGLE_KEY]
                changed = True
                logger.info("Migrated legacy Google API key to Gemini provider")
        else:
            del settings[LEGACY_GOOGLE_KEY]
            changed = True

    return changed
