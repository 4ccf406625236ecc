"""Tests for the recording state machine."""

import threading

import pytest
from conftest import FakeProvider, FakeSession

from voice_typing.audio import DeviceError
from voice_typing.config import MSG_ERROR_PREFIX, MSG_INVALID_KEY, MSG_MIC_DENIED, MSG_NO_API_KEY, MSG_NO_SPEECH
from voice_typing.coordinator import CoordinatorState, TriggerCoordinator, TriggerSource
from voice_typing.models import ApiKeyStatus, FailureReason, ProviderId, TranscriptionOutcome
from voice_typing.providers import AuthInvalidError, ProviderRejectedError, TransportError
from voice_typing.text_merge import TextBuffer


class ManualClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class Harness:
    """Coordinator wired to fakes; background work runs when ``finish()`` is called."""

    def __init__(self, registry, provider, session_factory=FakeSession, text=""):
        self.clock = ManualClock()
        self.pending = []
        self.buffer = TextBuffer(text)
        self.provider = provider
        self.coordinator = TriggerCoordinator(
            registry,
            self.buffer,
            session_factory=session_factory,
            provider_factory=lambda provider_id: provider,
            spawn=self.pending.append,
            clock=self.clock,
            cooldown=0.3,
        )

    def record_once(self):
        assert self.coordinator.start(TriggerSource.UI)
        self.clock.advance(1.0)
        assert self.coordinator.stop(TriggerSource.UI)
        self.finish()

    def finish(self):
        while self.pending:
            self.pending.pop(0)()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def harness(registry_with_key, provider):
    return Harness(registry_with_key, provider)


class TestTransitions:
    """Test the IDLE -> RECORDING -> TRANSCRIBING -> IDLE cycle."""

    def test_full_cycle(self, harness):
        """Test a successful recording is transcribed into the buffer."""
        states = []
        harness.coordinator.add_state_listener(states.append)

        harness.coordinator.start()
        assert harness.coordinator.state is CoordinatorState.RECORDING
        harness.clock.advance(1.0)
        harness.coordinator.stop()
        assert harness.coordinator.state is CoordinatorState.TRANSCRIBING
        assert FakeSession.instances[0].ended

        harness.finish()

        assert harness.coordinator.state is CoordinatorState.IDLE
        assert harness.buffer.text == "world"
        assert states == [CoordinatorState.RECORDING, CoordinatorState.TRANSCRIBING, CoordinatorState.IDLE]

    def test_uses_selected_model_and_key(self, harness, provider):
        """Test the provider receives the active config at stop time."""
        harness.record_once()

        _, model_id, api_key = provider.transcribe_calls[0]
        assert model_id == "gemini-2.0-flash"
        assert api_key == "valid-gemini-key"

    def test_start_without_key_shows_message(self, make_registry, provider):
        """Test that starting without an API key stays idle with a hint."""
        harness = Harness(make_registry(provider), provider)

        assert harness.coordinator.start() is False

        assert harness.coordinator.state is CoordinatorState.IDLE
        assert harness.buffer.text == MSG_NO_API_KEY
        assert harness.buffer.showing_message
        assert FakeSession.instances == []

    def test_microphone_failure_stays_idle(self, registry_with_key, provider):
        """Test that a denied microphone shows a message and stays idle."""
        harness = Harness(registry_with_key, provider, session_factory=lambda: FakeSession(fail=DeviceError("denied")))

        assert harness.coordinator.start() is False

        assert harness.coordinator.state is CoordinatorState.IDLE
        assert harness.buffer.text == MSG_MIC_DENIED
        assert harness.coordinator.session is None

    def test_stop_when_idle_is_ignored(self, harness):
        """Test that a stray stop signal does nothing."""
        assert harness.coordinator.stop() is False
        assert harness.pending == []

    def test_start_while_transcribing_is_ignored(self, harness):
        """Test that a start during transcription is dropped, not queued."""
        harness.coordinator.start()
        harness.clock.advance(1.0)
        harness.coordinator.stop()
        harness.clock.advance(1.0)

        assert harness.coordinator.start() is False
        harness.finish()

        assert harness.coordinator.state is CoordinatorState.IDLE
        assert len(FakeSession.instances) == 1


class TestDebounce:
    """Test the trigger cooldown."""

    def test_two_starts_50ms_apart_open_one_session(self, harness):
        """Test that a burst of start signals opens exactly one capture session."""
        assert harness.coordinator.start(TriggerSource.HOTKEY) is True
        harness.clock.advance(0.05)
        assert harness.coordinator.start(TriggerSource.UI) is False

        assert len(FakeSession.instances) == 1

    def test_toggle_within_cooldown_does_not_stop(self, harness):
        """Test that a key-repeat toggle right after starting is discarded."""
        harness.coordinator.toggle(TriggerSource.HOTKEY)
        harness.clock.advance(0.1)
        harness.coordinator.toggle(TriggerSource.HOTKEY)

        assert harness.coordinator.state is CoordinatorState.RECORDING

    def test_toggle_after_cooldown_stops(self, harness):
        """Test that a toggle outside the cooldown stops the recording."""
        harness.coordinator.toggle(TriggerSource.HOTKEY)
        harness.clock.advance(0.4)
        harness.coordinator.toggle(TriggerSource.HOTKEY)

        assert harness.coordinator.state is CoordinatorState.TRANSCRIBING

    def test_concurrent_starts_open_one_session(self, registry_with_key, provider):
        """Test that simultaneous start signals from many threads admit one session."""
        coordinator = TriggerCoordinator(
            registry_with_key,
            TextBuffer(),
            session_factory=FakeSession,
            provider_factory=lambda provider_id: provider,
            spawn=lambda target: None,
            cooldown=0.0,
        )
        barrier = threading.Barrier(8)

        def fire():
            barrier.wait()
            coordinator.start(TriggerSource.HOTKEY)

        threads = [threading.Thread(target=fire) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(FakeSession.instances) == 1
        assert coordinator.state is CoordinatorState.RECORDING


class TestOutcomes:
    """Test how transcription outcomes reach the buffer."""

    def test_transcript_inserted_at_cursor_captured_on_start(self, registry_with_key, provider):
        """Test that later cursor moves do not change where text lands."""
        harness = Harness(registry_with_key, provider, text="Hello there")
        harness.buffer.set_cursor(5)
        harness.coordinator.start()
        harness.buffer.set_cursor(11)
        harness.clock.advance(1.0)
        harness.coordinator.stop()
        harness.finish()

        assert harness.buffer.text == "Hello world there"

    def test_hello_world(self, registry_with_key, provider):
        """Test "Hello" + "world" gives "Hello world" with the cursor at 11."""
        harness = Harness(registry_with_key, provider, text="Hello")
        harness.record_once()

        assert harness.buffer.text == "Hello world"
        assert harness.buffer.cursor == 11

    def test_no_speech_on_empty_buffer(self, registry_with_key):
        """Test that the no-speech outcome shows a hint in an empty buffer."""
        harness = Harness(registry_with_key, FakeProvider(outcome=TranscriptionOutcome.no_speech()))
        harness.record_once()

        assert harness.buffer.text == MSG_NO_SPEECH
        assert harness.buffer.showing_message

    def test_no_speech_keeps_existing_text(self, registry_with_key):
        """Test that existing text is not replaced when nothing was said."""
        harness = Harness(
            registry_with_key, FakeProvider(outcome=TranscriptionOutcome.no_speech()), text="Draft"
        )
        harness.record_once()

        assert harness.buffer.text == "Draft"

    def test_auth_failure_marks_key_invalid(self, registry_with_key):
        """Test that HTTP 401 sets the key status to invalid and shows a message."""
        harness = Harness(registry_with_key, FakeProvider(error=AuthInvalidError("HTTP 401")))
        results = []
        harness.coordinator.add_result_listener(results.append)

        harness.record_once()

        assert harness.buffer.text == MSG_INVALID_KEY
        assert registry_with_key.config(ProviderId.GEMINI).api_key_status is ApiKeyStatus.INVALID
        assert results[0].failure is FailureReason.AUTH_INVALID
        assert harness.coordinator.state is CoordinatorState.IDLE

    def test_provider_rejection_shows_error(self, registry_with_key):
        """Test that provider errors are shown with their message."""
        harness = Harness(registry_with_key, FakeProvider(error=ProviderRejectedError("Quota exceeded")))
        harness.record_once()

        assert harness.buffer.text == MSG_ERROR_PREFIX + "Quota exceeded"
        assert registry_with_key.config(ProviderId.GEMINI).api_key_status is not ApiKeyStatus.INVALID

    def test_transport_error_returns_to_idle(self, registry_with_key):
        """Test that a network failure still ends in IDLE."""
        harness = Harness(registry_with_key, FakeProvider(error=TransportError("connection reset")))
        harness.record_once()

        assert harness.coordinator.state is CoordinatorState.IDLE
        assert harness.buffer.text.startswith(MSG_ERROR_PREFIX)

    def test_unexpected_exception_returns_to_idle(self, registry_with_key):
        """Test the cleanup path runs even for errors outside the provider contract."""
        harness = Harness(registry_with_key, FakeProvider(error=KeyError("candidates")))
        harness.record_once()

        assert harness.coordinator.state is CoordinatorState.IDLE
        assert harness.buffer.showing_message

    def test_empty_recording_is_not_sent(self, registry_with_key, provider):
        """Test that a recording without audio never reaches the provider."""
        harness = Harness(registry_with_key, provider, session_factory=lambda: FakeSession(data=b""))
        harness.record_once()

        assert provider.transcribe_calls == []
        assert harness.coordinator.state is CoordinatorState.IDLE


class TestLiveState:
    """Test that a callback registered once observes current state."""

    def test_hotkey_callback_sees_key_added_later(self, make_registry, provider):
        """Test that a key entered after registration is used by the same callback."""
        registry = make_registry(provider)
        harness = Harness(registry, provider)
        callback = lambda: harness.coordinator.toggle(TriggerSource.HOTKEY)  # noqa: E731

        callback()
        assert harness.buffer.text == MSG_NO_API_KEY

        registry.set_api_key(ProviderId.GEMINI, "late-gemini-key", schedule_validation=False)
        harness.clock.advance(1.0)
        callback()

        assert harness.coordinator.state is CoordinatorState.RECORDING

    def test_provider_switch_applies_to_next_recording(self, registry_with_key, provider):
        """Test that switching provider between recordings is picked up."""
        registry_with_key.set_api_key(ProviderId.OPENAI, "sk-openai-key-1", schedule_validation=False)
        harness = Harness(registry_with_key, provider)

        registry_with_key.select_provider(ProviderId.OPENAI)
        harness.record_once()

        _, model_id, api_key = provider.transcribe_calls[0]
        assert (model_id, api_key) == ("whisper-1", "sk-openai-key-1")
