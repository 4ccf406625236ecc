"""Shared fixtures: isolated settings, in-memory keys and fake collaborators."""

import pytest

from voice_typing.models import ApiKeyStatus, AudioArtifact, Model, ProviderId, TranscriptionOutcome
from voice_typing.registry import ProviderRegistry
from voice_typing.settings_store import SettingsStore


class FakeSession:
    """Capture session that records calls instead of opening a microphone."""

    instances: list["FakeSession"] = []

    def __init__(self, fail: Exception | None = None, data: bytes = b"RIFFdata"):
        self.fail = fail
        self.data = data
        self.begun = False
        self.ended = False
        FakeSession.instances.append(self)

    def begin(self):
        if self.fail:
            raise self.fail
        self.begun = True

    def end(self):
        self.ended = True
        return AudioArtifact(data=self.data, mime_type="audio/wav", duration_seconds=1.0)


class FakeProvider:
    """Provider returning canned results."""

    def __init__(self, outcome=None, error=None, status=ApiKeyStatus.VALID, models=None):
        self.outcome = outcome or TranscriptionOutcome.success("world")
        self.error = error
        self.status = status
        self.models = models or [Model("model-a", "Model A"), Model("model-b", "Model B")]
        self.transcribe_calls = []
        self.validate_calls = []

    def validate_key(self, api_key):
        self.validate_calls.append(api_key)
        return self.status

    def list_models(self, api_key):
        return list(self.models)

    def transcribe(self, artifact, model_id, api_key):
        self.transcribe_calls.append((artifact, model_id, api_key))
        if self.error:
            raise self.error
        return self.outcome


class InlineTimer:
    """Stand-in for threading.Timer that fires only when asked."""

    created: list["InlineTimer"] = []

    def __init__(self, interval, function, args=()):
        self.interval = interval
        self.function = function
        self.args = args
        self.cancelled = False
        self.started = False
        self.daemon = False
        InlineTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args)


def run_inline(target):
    target()


@pytest.fixture(autouse=True)
def reset_fakes():
    FakeSession.instances = []
    InlineTimer.created = []


@pytest.fixture
def store(tmp_path):
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def keys():
    """In-memory replacement for the keyring, keyed by provider."""
    return {}


@pytest.fixture
def make_registry(store, keys):
    def factory(provider=None, **kwargs):
        provider = provider or FakeProvider()

        def save(provider_id, value):
            keys[provider_id] = value
            return True

        kwargs.setdefault("provider_factory", lambda provider_id: provider)
        kwargs.setdefault("spawn", run_inline)
        kwargs.setdefault("timer_factory", InlineTimer)
        return ProviderRegistry(
            store,
            key_loader=lambda provider_id: keys.get(provider_id, ""),
            key_saver=save,
            **kwargs,
        )

    return factory


@pytest.fixture
def registry_with_key(make_registry, keys):
    keys[ProviderId.GEMINI] = "valid-gemini-key"
    return make_registry()
