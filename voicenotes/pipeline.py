"""Controller that drives capture -> transcription -> formatting.

The controller is the only writer of status, transcript and formatted note.
Every command either completes a documented transition or raises a
:class:`~voicenotes.errors.PreconditionViolation` /
:class:`~voicenotes.errors.AudioCaptureError` subclass without touching
state. Failures of the device or of a remote service never propagate out of
a command; they are recorded as an ``ERROR`` status that keeps whatever
transcript was already held. Cancelling a command mid-request returns the
controller to ``IDLE`` with the earlier transcript intact.

All commands must run on a single event loop. State only changes between
the three suspension points (opening the microphone, waiting on
transcription, waiting on formatting), so observers never see a
half-applied transition.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .audio_capture import StreamingMicrophoneRecorder
from .errors import (
    AlreadyCapturing,
    EmptyTranscript,
    NotCapturing,
    PipelineBusy,
    VoiceNotesError,
)
from .formatting import NoteFormatter
from .transcription import SpeechToTextService

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    TRANSCRIBING = "transcribing"
    FORMATTING = "formatting"
    ERROR = "error"


BUSY_STATES = frozenset(
    {PipelineState.CAPTURING, PipelineState.TRANSCRIBING, PipelineState.FORMATTING}
)


@dataclass(frozen=True)
class PipelineStatus:
    """Current stage plus, for ``ERROR``, what failed and why.

    ``ERROR`` is a resting state: it accepts exactly the commands ``IDLE``
    accepts, and the transcript held before the failure is still available.
    """

    state: PipelineState = PipelineState.IDLE
    reason: Optional[str] = None
    error: Optional[BaseException] = None
    failed_stage: Optional[PipelineState] = None

    @property
    def busy(self) -> bool:
        return self.state in BUSY_STATES

    @property
    def retriable(self) -> bool:
        return bool(getattr(self.error, "retriable", False))

    @classmethod
    def failed(cls, stage: PipelineState, error: BaseException) -> "PipelineStatus":
        return cls(
            state=PipelineState.ERROR,
            reason=str(error) or type(error).__name__,
            error=error,
            failed_stage=stage,
        )


@dataclass(frozen=True)
class PipelineSnapshot:
    """Everything a presentation layer is allowed to render."""

    status: PipelineStatus
    transcript: str
    formatted_note: str


Listener = Callable[[PipelineSnapshot], None]


class PipelineController:
    def __init__(
        self,
        recorder: StreamingMicrophoneRecorder,
        transcriber: SpeechToTextService,
        formatter: NoteFormatter,
        terminology: str = "",
    ) -> None:
        self._recorder = recorder
        self._transcriber = transcriber
        self._formatter = formatter
        self._terminology = terminology
        self._status = PipelineStatus()
        self._transcript = ""
        self._formatted_note = ""
        self._opening_device = False
        self._listeners: List[Listener] = []

    @property
    def status(self) -> PipelineStatus:
        return self._status

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def formatted_note(self) -> str:
        return self._formatted_note

    @property
    def terminology(self) -> str:
        return self._terminology

    @property
    def busy(self) -> bool:
        return self._status.busy or self._opening_device

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(self._status, self._transcript, self._formatted_note)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every status change. Returns an unsubscribe hook."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start_capture(self) -> PipelineStatus:
        if self._status.state is PipelineState.CAPTURING or self._opening_device:
            raise AlreadyCapturing("A recording is already in progress")
        self._ensure_idle("start capture")

        self._opening_device = True
        try:
            await self._recorder.start()
        except AlreadyCapturing:
            raise
        except VoiceNotesError as exc:
            return self._fail(PipelineState.CAPTURING, exc)
        finally:
            self._opening_device = False

        return self._set_status(PipelineStatus(PipelineState.CAPTURING))

    async def stop_capture(self) -> PipelineStatus:
        """Stop recording and transcribe the result straight away."""
        if self._status.state is not PipelineState.CAPTURING:
            raise NotCapturing("No recording in progress")

        try:
            artifact = self._recorder.stop()
        except VoiceNotesError as exc:
            return self._fail(PipelineState.CAPTURING, exc)
        except Exception as exc:
            self._fail(PipelineState.CAPTURING, exc)
            raise

        self._set_status(PipelineStatus(PipelineState.TRANSCRIBING))
        try:
            result = await self._transcriber.transcribe(artifact)
        except asyncio.CancelledError:
            self._abandon(PipelineState.TRANSCRIBING)
            raise
        except VoiceNotesError as exc:
            return self._fail(PipelineState.TRANSCRIBING, exc)
        except Exception as exc:
            self._fail(PipelineState.TRANSCRIBING, exc)
            raise

        self._transcript = result.text
        # A note produced from an earlier transcript no longer matches.
        self._formatted_note = ""
        logger.info("Transcript ready (%d chars)", len(self._transcript))
        return self._set_status(PipelineStatus(PipelineState.IDLE))

    async def format_to_markdown(self) -> PipelineStatus:
        self._ensure_idle("format")
        if not self._transcript.strip():
            raise EmptyTranscript("Nothing to format: transcript is empty")

        self._set_status(PipelineStatus(PipelineState.FORMATTING))
        try:
            result = await self._formatter.format(self._transcript, self._terminology)
        except asyncio.CancelledError:
            self._formatted_note = ""
            self._abandon(PipelineState.FORMATTING)
            raise
        except VoiceNotesError as exc:
            self._formatted_note = ""
            return self._fail(PipelineState.FORMATTING, exc)
        except Exception as exc:
            self._formatted_note = ""
            self._fail(PipelineState.FORMATTING, exc)
            raise

        self._formatted_note = result.text
        logger.info("Formatted note ready (%d chars)", len(self._formatted_note))
        return self._set_status(PipelineStatus(PipelineState.IDLE))

    def cancel_capture(self) -> PipelineStatus:
        """Stop recording, release the microphone and discard the audio."""
        if self._status.state is not PipelineState.CAPTURING:
            raise NotCapturing("No recording in progress")

        try:
            self._recorder.stop()
        except VoiceNotesError as exc:
            logger.debug("Discarded recording: %s", exc)
        finally:
            self._set_status(PipelineStatus(PipelineState.IDLE))
        logger.info("Recording discarded")
        return self._status

    def clear(self) -> PipelineStatus:
        self._ensure_idle("clear")
        self._transcript = ""
        self._formatted_note = ""
        return self._set_status(PipelineStatus(PipelineState.IDLE))

    def _ensure_idle(self, command: str) -> None:
        if self.busy:
            state = "opening microphone" if self._opening_device else self._status.state.value
            raise PipelineBusy(f"Cannot {command} while {state}")

    def _fail(self, stage: PipelineState, error: BaseException) -> PipelineStatus:
        if isinstance(error, VoiceNotesError):
            logger.error("%s failed: %s", stage.value.capitalize(), error)
        else:
            logger.exception("%s failed unexpectedly", stage.value.capitalize())
        return self._set_status(PipelineStatus.failed(stage, error))

    def _abandon(self, stage: PipelineState) -> PipelineStatus:
        logger.info("%s cancelled", stage.value.capitalize())
        return self._set_status(PipelineStatus(PipelineState.IDLE))

    def _set_status(self, status: PipelineStatus) -> PipelineStatus:
        self._status = status
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Status listener %r raised", listener)
        return status
