"""Speech-to-text adapters."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .audio_capture import AudioArtifact
from .errors import EmptyRecording, UpstreamError
from .openai_http import OpenAIHTTPClient

logger = logging.getLogger(__name__)

DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
TRANSCRIPTIONS_PATH = "audio/transcriptions"


@dataclass
class TranscriptionResult:
    """Container for transcription outputs."""

    text: str
    language: Optional[str] = None
    raw: Optional[dict] = None


class SpeechToTextService(Protocol):
    """Interface for speech-to-text providers."""

    async def transcribe(self, artifact: AudioArtifact) -> TranscriptionResult:
        """Return the transcription for the given recording."""


class OpenAIWhisperTranscriber:
    """Sends recordings to the hosted Whisper transcription endpoint."""

    def __init__(self, http: OpenAIHTTPClient, model: Optional[str] = None) -> None:
        self._http = http
        self.model = model or DEFAULT_TRANSCRIPTION_MODEL

    async def transcribe(self, artifact: AudioArtifact) -> TranscriptionResult:
        if not artifact.data:
            raise EmptyRecording("Refusing to transcribe an empty recording")

        logger.info("Transcribing %d bytes with %s", len(artifact), self.model)
        data = await self._http.post(
            TRANSCRIPTIONS_PATH,
            files={"file": (artifact.filename, artifact.data, artifact.content_type)},
            data={"model": self.model},
        )

        text = data.get("text")
        if not isinstance(text, str):
            raise UpstreamError("Transcription response has no 'text' field", body=str(data)[:500])
        if not text.strip():
            raise UpstreamError("Transcription service returned empty text")
        return TranscriptionResult(text=text, language=data.get("language"), raw=data)
