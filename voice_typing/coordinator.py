"""Recording state machine shared by the UI control and the global hotkey.

Both entry points hold a reference to the same ``TriggerCoordinator`` and
call ``start``/``stop``/``toggle`` on it. Everything the coordinator needs
(active provider, API key, buffer contents and cursor) is read at the moment
a signal arrives, so a callback registered once at startup never acts on
stale values.

    IDLE --start--> RECORDING --stop--> TRANSCRIBING --done--> IDLE
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable

from voice_typing.audio import CaptureSession, DeviceError
from voice_typing.config import (
    HOTKEY_COOLDOWN_S,
    MSG_ERROR_PREFIX,
    MSG_INVALID_KEY,
    MSG_MIC_DENIED,
    MSG_NO_API_KEY,
    MSG_NO_SPEECH,
    MSG_UNKNOWN_ERROR,
)
from voice_typing.models import (
    AudioArtifact,
    FailureReason,
    ProviderConfig,
    ProviderId,
    TranscriptionOutcome,
)
from voice_typing.providers import ProviderError, TranscriptionProvider, get_provider
from voice_typing.registry import ProviderRegistry
from voice_typing.text_merge import TextBuffer

logger = logging.getLogger(__name__)


class CoordinatorState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"


class TriggerSource(str, Enum):
    UI = "ui"
    HOTKEY = "hotkey"


StateListener = Callable[[CoordinatorState], None]
ResultListener = Callable[[TranscriptionOutcome], None]


def _spawn_daemon(target: Callable[[], None]) -> None:
    threading.Thread(target=target, daemon=True).start()


class TriggerCoordinator:
    """Serializes start/stop signals and runs one capture at a time."""

    def __init__(
        self,
        registry: ProviderRegistry,
        buffer: TextBuffer,
        session_factory: Callable[[], CaptureSession] = CaptureSession,
        provider_factory: Callable[[ProviderId], TranscriptionProvider] = get_provider,
        spawn: Callable[[Callable[[], None]], None] = _spawn_daemon,
        clock: Callable[[], float] = time.monotonic,
        cooldown: float = HOTKEY_COOLDOWN_S,
    ):
        self.registry = registry
        self.buffer = buffer
        self._session_factory = session_factory
        self._provider_factory = provider_factory
        self._spawn = spawn
        self._clock = clock
        self._cooldown = cooldown

        self._lock = threading.RLock()
        self._state = CoordinatorState.IDLE
        self._session: CaptureSession | None = None
        self._cursor_at_start = 0
        self._last_accepted: float | None = None
        self._state_listeners: list[StateListener] = []
        self._result_listeners: list[ResultListener] = []

    @property
    def state(self) -> CoordinatorState:
        with self._lock:
            return self._state

    @property
    def session(self) -> CaptureSession | None:
        with self._lock:
            return self._session

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def add_result_listener(self, listener: ResultListener) -> None:
        self._result_listeners.append(listener)

    def start(self, source: TriggerSource = TriggerSource.UI) -> bool:
        """Begin recording if idle. Returns True if a capture session started."""
        with self._lock:
            if not self._accept_signal(source):
                return False
            return self._start_locked(source)

    def stop(self, source: TriggerSource = TriggerSource.UI) -> bool:
        """Finish recording and hand the audio to the provider in the background."""
        with self._lock:
            if self._state is not CoordinatorState.RECORDING:
                logger.debug(f"Stop from {source.value} ignored in state {self._state.value}")
                return False
            return self._stop_locked(source)

    def toggle(self, source: TriggerSource = TriggerSource.HOTKEY) -> bool:
        """Start when idle, stop when recording, ignore while transcribing."""
        with self._lock:
            if not self._accept_signal(source):
                return False
            if self._state is CoordinatorState.RECORDING:
                return self._stop_locked(source)
            return self._start_locked(source)

    # -- transitions, called with the lock held ---------------------------

    def _accept_signal(self, source: TriggerSource) -> bool:
        now = self._clock()
        if self._last_accepted is not None and now - self._last_accepted < self._cooldown:
            logger.debug(f"Trigger from {source.value} ignored (cooldown)")
            return False
        self._last_accepted = now
        return True

    def _start_locked(self, source: TriggerSource) -> bool:
        if self._state is not CoordinatorState.IDLE or self._session is not None:
            logger.debug(f"Start from {source.value} ignored in state {self._state.value}")
            return False

        if not self.registry.active_config().has_api_key:
            self.buffer.show_message(MSG_NO_API_KEY)
            return False

        self._cursor_at_start = self.buffer.cursor
        session = self._session_factory()
        try:
            session.begin()
        except DeviceError as e:
            logger.error(f"Microphone unavailable: {e}")
            self.buffer.show_message(MSG_MIC_DENIED)
            return False

        self._session = session
        self._set_state(CoordinatorState.RECORDING)
        logger.info(f"Recording started via {source.value}")
        return True

    def _stop_locked(self, source: TriggerSource) -> bool:
        session, self._session = self._session, None
        artifact = session.end() if session is not None else None
        config = self.registry.active_config()
        cursor = self._cursor_at_start
        self._set_state(CoordinatorState.TRANSCRIBING)
        logger.info(f"Recording stopped via {source.value}; transcribing with {config.provider_id.value}")
        self._spawn(lambda: self._transcribe(artifact, config, cursor))
        return True

    # -- background work --------------------------------------------------

    def _transcribe(self, artifact: AudioArtifact | None, config: ProviderConfig, cursor: int) -> None:
        outcome = TranscriptionOutcome.failed(FailureReason.EMPTY_RESPONSE, "No audio recorded")
        try:
            if artifact is not None and not artifact.is_empty:
                outcome = self._run_provider(artifact, config)
            self._apply(outcome, config, cursor)
        except Exception as e:
            logger.exception(f"Unexpected error while transcribing: {e}")
            outcome = TranscriptionOutcome.failed(FailureReason.TRANSPORT_OR_PARSE, str(e))
            self.buffer.show_message(MSG_ERROR_PREFIX + (str(e) or MSG_UNKNOWN_ERROR))
        finally:
            with self._lock:
                self._set_state(CoordinatorState.IDLE)
            for listener in list(self._result_listeners):
                listener(outcome)

    def _run_provider(self, artifact: AudioArtifact, config: ProviderConfig) -> TranscriptionOutcome:
        try:
            provider = self._provider_factory(config.provider_id)
            return provider.transcribe(artifact, config.selected_model, config.api_key)
        except ProviderError as e:
            logger.error(f"Transcription failed ({e.reason.value}): {e}")
            return TranscriptionOutcome.failed(e.reason, str(e))

    def _apply(self, outcome: TranscriptionOutcome, config: ProviderConfig, cursor: int) -> None:
        if outcome.ok:
            self.buffer.insert(outcome.text.strip(), cursor)
            logger.info(f"Inserted {len(outcome.text)} characters")
            return

        if outcome.failure is FailureReason.NO_SPEECH_DETECTED:
            # Existing text is kept; only an empty buffer gets the hint
            if not self.buffer.text:
                self.buffer.show_message(MSG_NO_SPEECH)
            return

        if outcome.failure is FailureReason.AUTH_INVALID:
            self.registry.mark_invalid(config.provider_id)
            self.buffer.show_message(MSG_INVALID_KEY)
            return

        self.buffer.show_message(MSG_ERROR_PREFIX + (outcome.detail or MSG_UNKNOWN_ERROR))

    def _set_state(self, state: CoordinatorState) -> None:
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener failed: {e}")
