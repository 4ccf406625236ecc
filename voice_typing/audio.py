"""Microphone capture producing WAV artifacts."""

import io
import logging
import queue
import wave

import numpy as np
import sounddevice as sd

from voice_typing.config import AUDIO_MIME_TYPE, CHUNK_MS, INPUT_CHANNELS, SAMPLE_RATE
from voice_typing.models import AudioArtifact, FailureReason

logger = logging.getLogger(__name__)


class DeviceError(Exception):
    """Raised when the microphone cannot be opened."""

    reason = FailureReason.PERMISSION_DENIED


def encode_wav(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Encode float samples in ``[-1, 1]`` as 16-bit mono PCM WAV bytes."""
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)  # int16
        wf.setframerate(sample_rate)
        wf.writeframes(pcm.tobytes())
    return buf.getvalue()


class CaptureSession:
    """One microphone recording, from ``begin()`` to ``end()``.

    The stream callback pushes chunks onto a queue; ``end()`` drains it after
    the stream is closed, so no chunk is lost and no extra thread is needed.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = INPUT_CHANNELS,
        chunk_ms: float = CHUNK_MS,
        device: int | None = None,
    ):
        """
        Initialize the capture session.

        Args:
            sample_rate: Sample rate in Hz (default: from config)
            channels: Number of input channels (default: from config)
            chunk_ms: Block size in milliseconds (default: from config)
            device: Input device index (None for the system default)
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device

        self._audio_queue: queue.Queue[np.ndarray] = queue.Queue()
        self._stream: sd.InputStream | None = None
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        """Callback for the audio input stream."""
        if status:
            logger.debug(f"Audio status: {status}")
        # Mix down to mono
        data = indata if indata.ndim == 1 else np.mean(indata, axis=1)
        self._audio_queue.put_nowait(data.copy())

    def begin(self) -> None:
        """Open the microphone and start collecting audio.

        Raises:
            DeviceError: If no input device exists or access is denied
        """
        try:
            self._stream = sd.InputStream(
                channels=self.channels,
                samplerate=self.sample_rate,
                dtype="float32",
                callback=self._audio_callback,
                blocksize=int(self.sample_rate * (self.chunk_ms / 1000.0)),
                device=self.device,
            )
            self._stream.start()
        except (sd.PortAudioError, RuntimeError, ValueError) as e:
            # PortAudioError: device busy, missing or access denied
            # ValueError: invalid device index or settings
            logger.error(f"Could not open microphone: {e}")
            self._release()
            raise DeviceError(str(e)) from e
        self._active = True
        logger.info("Recording started")

    def end(self) -> AudioArtifact:
        """Stop recording and return everything captured as one WAV artifact.

        The stream is released even if stopping it fails.
        """
        try:
            if self._stream is not None:
                self._stream.stop()
        except (sd.PortAudioError, RuntimeError, AttributeError) as e:
            # Stream already stopped or in an invalid state
            logger.warning(f"Error stopping audio stream: {e}")
        finally:
            self._release()

        chunks = []
        while True:
            try:
                chunks.append(self._audio_queue.get_nowait())
            except queue.Empty:
                break

        if not chunks:
            logger.info("Recording stopped with no audio")
            return AudioArtifact(data=b"", mime_type=AUDIO_MIME_TYPE)

        samples = np.concatenate(chunks).astype(np.float32)
        duration = len(samples) / float(self.sample_rate)
        logger.info(f"Recording stopped ({duration:.1f}s)")
        return AudioArtifact(
            data=encode_wav(samples, self.sample_rate),
            mime_type=AUDIO_MIME_TYPE,
            duration_seconds=duration,
        )

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        self._active = False
        if stream is None:
            return
        try:
            stream.close()
        except (sd.PortAudioError, RuntimeError, AttributeError) as e:
            logger.warning(f"Error closing audio stream: {e}")


def list_input_devices() -> list[tuple[int, str]]:
    """Return ``(index, name)`` for every device with input channels."""
    try:
        devices = sd.query_devices()
    except (sd.PortAudioError, RuntimeError) as e:
        logger.error(f"Could not query audio devices: {e}")
        return []
    return [
        (index, device["name"])
        for index, device in enumerate(devices)
        if device.get("max_input_channels", 0) > 0
    ]
