"""Microphone capture utilities."""

from __future__ import annotations

import asyncio
import io
import logging
import threading
from dataclasses import dataclass
from functools import partial
from typing import List, Optional, Union

import numpy as np
import sounddevice as sd
import soundfile as sf

from .errors import (
    AlreadyCapturing,
    AudioCaptureError,
    DeviceUnavailable,
    EmptyRecording,
    NotCapturing,
    PermissionDenied,
)

logger = logging.getLogger(__name__)

WAV_CONTENT_TYPE = "audio/wav"
WAV_FILENAME = "recording.wav"

_PERMISSION_MARKERS = ("permission", "not permitted", "access denied", "not authorized")


@dataclass
class AudioCaptureConfig:
    """Configuration options for microphone capture."""

    sample_rate: int = 16_000
    channels: int = 1
    dtype: str = "float32"
    device: Optional[Union[int, str]] = None


@dataclass
class AudioDevice:
    name: str
    index: int
    channels: int
    default_sample_rate: float


@dataclass(frozen=True)
class AudioArtifact:
    """A finished recording, encoded once and handed to transcription."""

    data: bytes
    sample_rate: int
    channels: int
    frames: int
    content_type: str = WAV_CONTENT_TYPE
    filename: str = WAV_FILENAME

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / self.sample_rate

    def __len__(self) -> int:
        return len(self.data)


class RecordingSession:
    """Chunks buffered in arrival order while a capture is active."""

    def __init__(self, config: AudioCaptureConfig) -> None:
        self.config = config
        self._chunks: List[np.ndarray] = []
        self._lock = threading.Lock()

    @property
    def chunk_count(self) -> int:
        with self._lock:
            return len(self._chunks)

    def append(self, chunk: np.ndarray) -> None:
        with self._lock:
            self._chunks.append(chunk.copy())

    def finalize(self) -> AudioArtifact:
        """Concatenate the buffered chunks into a WAV artifact."""
        with self._lock:
            chunks, self._chunks = self._chunks, []
        if not chunks:
            raise EmptyRecording("No audio was captured")

        audio = np.concatenate(chunks, axis=0).reshape(-1, self.config.channels)
        buffer = io.BytesIO()
        sf.write(
            file=buffer,
            data=audio,
            samplerate=self.config.sample_rate,
            format="WAV",
            subtype="PCM_16",
        )
        return AudioArtifact(
            data=buffer.getvalue(),
            sample_rate=self.config.sample_rate,
            channels=self.config.channels,
            frames=audio.shape[0],
        )


class StreamingMicrophoneRecorder:
    """Capture audio until stop() is invoked, buffering samples incrementally.

    Only one session may be active at a time. The input device is held from a
    successful start() until stop(), which always releases it before the
    buffered audio is encoded.
    """

    def __init__(self, config: Optional[AudioCaptureConfig] = None) -> None:
        self.config = config or AudioCaptureConfig()
        self._stream: Optional[sd.InputStream] = None
        self._session: Optional[RecordingSession] = None
        self._opening = False

    def is_running(self) -> bool:
        return self._stream is not None

    async def start(self) -> None:
        """Open the input device and begin buffering audio.

        Waiting for the platform to grant microphone access happens off the
        event loop.
        """
        if self._stream is not None or self._opening:
            raise AlreadyCapturing("Recorder already running")

        self._opening = True
        session = RecordingSession(self.config)
        opening = asyncio.ensure_future(asyncio.to_thread(self._open_stream, session))
        try:
            stream = await asyncio.shield(opening)
        except asyncio.CancelledError:
            # The worker thread keeps going; close whatever it opens.
            opening.add_done_callback(self._discard_abandoned)
            raise
        except BaseException:
            self._opening = False
            raise
        self._opening = False

        self._session = session
        self._stream = stream
        logger.info(
            "Capture started (%d Hz, %d channel(s))",
            self.config.sample_rate,
            self.config.channels,
        )

    def stop(self) -> AudioArtifact:
        """Stop capturing, release the device and return the recording."""
        if self._stream is None or self._session is None:
            raise NotCapturing("Recorder not running")

        stream, session = self._stream, self._session
        self._stream = None
        self._session = None
        try:
            stream.stop()
        except sd.PortAudioError as exc:
            logger.warning("Input stream did not stop cleanly: %s", exc)
        finally:
            stream.close()

        artifact = session.finalize()
        logger.info(
            "Capture finished: %.2f s, %d bytes",
            artifact.duration_seconds,
            len(artifact),
        )
        return artifact

    def _open_stream(self, session: RecordingSession) -> sd.InputStream:
        try:
            stream = sd.InputStream(
                samplerate=self.config.sample_rate,
                channels=self.config.channels,
                dtype=self.config.dtype,
                device=self.config.device,
                callback=partial(self._callback, session),
            )
        except (sd.PortAudioError, ValueError) as exc:
            raise _classify_device_error(exc) from exc

        try:
            stream.start()
        except sd.PortAudioError as exc:
            stream.close()
            raise _classify_device_error(exc) from exc
        return stream

    def _discard_abandoned(self, opening: "asyncio.Future[sd.InputStream]") -> None:
        self._opening = False
        if opening.cancelled() or opening.exception() is not None:
            return
        opening.result().close()
        logger.info("Closed input stream opened after start was cancelled")

    @staticmethod
    def _callback(session: RecordingSession, indata: np.ndarray, frames: int, time, status) -> None:
        if status:
            logger.warning("Input stream status: %s", status)
        session.append(indata)


def list_input_devices() -> List[AudioDevice]:
    devices = []
    for i, device in enumerate(sd.query_devices()):
        if device["max_input_channels"] > 0:
            devices.append(
                AudioDevice(
                    name=device["name"],
                    index=i,
                    channels=device["max_input_channels"],
                    default_sample_rate=device["default_samplerate"],
                )
            )
    return devices


def _classify_device_error(exc: Exception) -> AudioCaptureError:
    message = str(exc)
    if any(marker in message.lower() for marker in _PERMISSION_MARKERS):
        return PermissionDenied(f"Microphone access denied: {message}")
    return DeviceUnavailable(f"Audio input device unavailable: {message}")
