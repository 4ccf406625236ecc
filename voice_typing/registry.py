"""Per-provider credentials and model selection."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable

from voice_typing import credentials
from voice_typing.config import KEY_VALIDATION_DEBOUNCE_S, MIN_API_KEY_LENGTH
from voice_typing.models import ApiKeyStatus, ProviderConfig, ProviderId
from voice_typing.providers import TranscriptionProvider, get_provider
from voice_typing.settings_store import PROVIDER_CONFIGS, STT_PROVIDER, SettingsStore

logger = logging.getLogger(__name__)

ConfigListener = Callable[[ProviderId, ProviderConfig], None]


def _spawn_daemon(target: Callable[[], None]) -> None:
    threading.Thread(target=target, daemon=True).start()


class ProviderRegistry:
    """Holds one ``ProviderConfig`` per provider plus the active provider.

    Configs are replaced wholesale under a lock and persisted after every
    change; API keys go to the keyring, everything else to the settings
    file. A key the keyring rejects stays in the settings file as plaintext
    ``apiKey``. Network work (key checks, model listing) runs on the
    calling thread, so front-ends schedule it through ``spawn`` or the
    debounce timer.
    """

    def __init__(
        self,
        store: SettingsStore,
        provider_factory: Callable[[ProviderId], TranscriptionProvider] = get_provider,
        spawn: Callable[[Callable[[], None]], None] = _spawn_daemon,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
        key_loader: Callable[[ProviderId], str] = credentials.load_api_key,
        key_saver: Callable[[ProviderId, str], bool] = credentials.save_api_key,
        debounce_s: float = KEY_VALIDATION_DEBOUNCE_S,
    ):
        self._store = store
        self._provider_factory = provider_factory
        self._spawn = spawn
        self._timer_factory = timer_factory
        self._key_saver = key_saver
        self._debounce_s = debounce_s
        self._lock = threading.RLock()
        self._listeners: list[ConfigListener] = []
        self._timers: dict[ProviderId, threading.Timer] = {}
        # Providers whose key could not reach the keyring and stays in the settings file
        self._plaintext_keys: set[ProviderId] = set()

        stored = store.get(PROVIDER_CONFIGS, {})
        if not isinstance(stored, dict):
            logger.warning("Ignoring malformed provider_configs entry")
            stored = {}
        self._configs: dict[ProviderId, ProviderConfig] = {}
        for provider_id in ProviderId:
            config = ProviderConfig.from_dict(provider_id, stored.get(provider_id.value))
            api_key = key_loader(provider_id)
            if not api_key and config.api_key:
                logger.warning(f"Using {provider_id.value} API key from the settings file")
                api_key = config.api_key
                self._plaintext_keys.add(provider_id)
            self._configs[provider_id] = replace(config, api_key=api_key)

        self._active = ProviderId.parse(store.get(STT_PROVIDER), default=ProviderId.GEMINI)
        logger.info(f"Active provider: {self._active.value}")

    # -- read access -------------------------------------------------------

    @property
    def active_provider(self) -> ProviderId:
        with self._lock:
            return self._active

    def config(self, provider_id: ProviderId) -> ProviderConfig:
        with self._lock:
            return self._configs[provider_id]

    def active_config(self) -> ProviderConfig:
        with self._lock:
            return self._configs[self._active]

    def add_listener(self, listener: ConfigListener) -> None:
        self._listeners.append(listener)

    # -- mutations ---------------------------------------------------------

    def select_provider(self, provider_id: ProviderId) -> None:
        with self._lock:
            self._active = provider_id
            config = self._configs[provider_id]
        self._store.set(STT_PROVIDER, provider_id.value)
        logger.info(f"Selected provider: {provider_id.value}")
        self._notify(provider_id, config)

    def set_api_key(self, provider_id: ProviderId, api_key: str, schedule_validation: bool = True) -> None:
        """Store a new key and schedule its validation.

        Validation runs once the key has been left unchanged for the debounce
        interval; each edit restarts the wait. Callers passing
        ``schedule_validation=False`` run ``validate_key`` themselves.
        """
        api_key = api_key.strip()
        with self._lock:
            if api_key == self._configs[provider_id].api_key:
                return
        saved = self._key_saver(provider_id, api_key)
        with self._lock:
            if saved or not api_key:
                self._plaintext_keys.discard(provider_id)
            else:
                logger.warning(f"Keeping {provider_id.value} API key in the settings file")
                self._plaintext_keys.add(provider_id)
        self._update(provider_id, api_key=api_key, api_key_status=ApiKeyStatus.UNVERIFIED)

        with self._lock:
            previous = self._timers.pop(provider_id, None)
            if previous is not None:
                previous.cancel()
            if not schedule_validation:
                return
            timer = self._timer_factory(self._debounce_s, self.validate_key, args=(provider_id,))
            timer.daemon = True
            self._timers[provider_id] = timer
        timer.start()

    def validate_key(self, provider_id: ProviderId) -> ApiKeyStatus:
        """Check the current key with the provider and record the result.

        Keys shorter than the minimum length are reset to unverified without a
        network call. A result is discarded if the key changed meanwhile.
        """
        with self._lock:
            self._timers.pop(provider_id, None)
            api_key = self._configs[provider_id].api_key
        if len(api_key) < MIN_API_KEY_LENGTH:
            self._update(provider_id, api_key_status=ApiKeyStatus.UNVERIFIED)
            return ApiKeyStatus.UNVERIFIED

        self._update(provider_id, api_key_status=ApiKeyStatus.VERIFYING)
        try:
            status = self._provider_factory(provider_id).validate_key(api_key)
        except Exception as e:
            # Adapters map their own failures; anything else still means "not valid"
            logger.error(f"Key validation for {provider_id.value} raised: {e}")
            status = ApiKeyStatus.INVALID

        if not self._key_unchanged(provider_id, api_key):
            logger.debug(f"Discarding stale validation result for {provider_id.value}")
            return status
        self._update(provider_id, api_key_status=status)
        logger.info(f"API key for {provider_id.value}: {status.value}")
        if status is ApiKeyStatus.VALID:
            self.fetch_models(provider_id)
        return status

    def fetch_models(self, provider_id: ProviderId) -> None:
        with self._lock:
            api_key = self._configs[provider_id].api_key
        if len(api_key) < MIN_API_KEY_LENGTH:
            return

        self._update(provider_id, models_loading=True)
        try:
            models = self._provider_factory(provider_id).list_models(api_key)
        except Exception as e:
            logger.error(f"Listing models for {provider_id.value} failed: {e}")
            self._update(provider_id, models_loading=False)
            return

        if not self._key_unchanged(provider_id, api_key):
            self._update(provider_id, models_loading=False)
            return
        self._update(provider_id, available_models=tuple(models), models_loading=False)
        logger.info(f"Loaded {len(models)} models for {provider_id.value}")

    def select_model(self, provider_id: ProviderId, model_id: str) -> bool:
        with self._lock:
            if model_id not in self._configs[provider_id].model_ids():
                logger.warning(f"Unknown model for {provider_id.value}: {model_id}")
                return False
        self._update(provider_id, selected_model=model_id)
        return True

    def mark_invalid(self, provider_id: ProviderId) -> None:
        self._update(provider_id, api_key_status=ApiKeyStatus.INVALID)

    def validate_on_startup(self) -> None:
        """Re-check the active provider's stored key in the background."""
        provider_id = self.active_provider
        if self.config(provider_id).has_api_key:
            self._spawn(lambda: self.validate_key(provider_id))

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    # -- internals ---------------------------------------------------------

    def _key_unchanged(self, provider_id: ProviderId, api_key: str) -> bool:
        with self._lock:
            return self._configs[provider_id].api_key == api_key

    def _update(self, provider_id: ProviderId, **changes) -> ProviderConfig:
        with self._lock:
            config = replace(self._configs[provider_id], **changes).with_valid_selection()
            self._configs[provider_id] = config
            snapshot = {pid.value: cfg.to_dict() for pid, cfg in self._configs.items()}
            for pid in self._plaintext_keys:
                snapshot[pid.value]["apiKey"] = self._configs[pid].api_key
        self._store.set(PROVIDER_CONFIGS, snapshot)
        self._notify(provider_id, config)
        return config

    def _notify(self, provider_id: ProviderId, config: ProviderConfig) -> None:
        for listener in list(self._listeners):
            try:
                listener(provider_id, config)
            except Exception as e:
                logger.error(f"Provider config listener failed: {e}")
