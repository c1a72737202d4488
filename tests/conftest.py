"""
Shared fixtures for pipeline tests.

Nothing here touches audio hardware or the network: the recorder is a fake
and both remote clients are AsyncMocks returning canned results.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from voicenotes.audio_capture import AudioArtifact
from voicenotes.formatting import FormattingResult
from voicenotes.pipeline import PipelineController
from voicenotes.transcription import TranscriptionResult

TERMINOLOGY = "- Byterat: the company\n- BDF: Battery Data Format\n"
NOTE = "## 2024-01-01\n- hello world"


def make_artifact(data=b"RIFF\x00\x00\x00\x00WAVEfmt ", frames=16000):
    return AudioArtifact(data=data, sample_rate=16000, channels=1, frames=frames)


def make_response(status_code=200, json_data=None, text=None):
    response = MagicMock()
    response.status_code = status_code
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    response.text = text if text is not None else repr(json_data)
    return response


class FakeRecorder:
    """Stand-in for StreamingMicrophoneRecorder."""

    def __init__(self, artifact=None, start_error=None, stop_error=None):
        self.artifact = artifact or make_artifact()
        self.start_error = start_error
        self.stop_error = stop_error
        self.running = False
        self.start_calls = 0
        self.stop_calls = 0

    def is_running(self):
        return self.running

    async def start(self):
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self.running = True

    def stop(self):
        self.stop_calls += 1
        self.running = False
        if self.stop_error is not None:
            raise self.stop_error
        return self.artifact


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def transcriber():
    mock = MagicMock()
    mock.transcribe = AsyncMock(return_value=TranscriptionResult(text="hello world"))
    return mock


@pytest.fixture
def formatter():
    mock = MagicMock()
    mock.format = AsyncMock(return_value=FormattingResult(text=NOTE, model="gpt-4o"))
    return mock


@pytest.fixture
def controller(recorder, transcriber, formatter):
    return PipelineController(recorder, transcriber, formatter, terminology=TERMINOLOGY)
