"""Exception taxonomy for the capture -> transcribe -> format pipeline."""

from __future__ import annotations

from typing import Optional


class VoiceNotesError(RuntimeError):
    """Base class for every error raised by the pipeline."""

    retriable = False


class AudioCaptureError(VoiceNotesError):
    """Raised when the microphone cannot be acquired or released."""


class PermissionDenied(AudioCaptureError):
    """The platform refused access to the microphone."""


class DeviceUnavailable(AudioCaptureError):
    """No usable input device exists or it failed to open."""


class AlreadyCapturing(AudioCaptureError):
    """A capture session is already active."""


class NotCapturing(AudioCaptureError):
    """Stop was requested while no capture session is active."""


class UpstreamServiceError(VoiceNotesError):
    """Raised when a remote transcription or generation call fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NetworkError(UpstreamServiceError):
    """Endpoint unreachable or timed out. Safe to retry."""

    retriable = True


class AuthError(UpstreamServiceError):
    """Credential missing or rejected."""


class UpstreamError(UpstreamServiceError):
    """Endpoint answered with a non-success status or an unusable body."""


class PreconditionViolation(VoiceNotesError):
    """A command was issued in a state that does not allow it."""


class EmptyRecording(PreconditionViolation):
    """Capture stopped before any audio arrived."""


class EmptyTranscript(PreconditionViolation):
    """Formatting was requested without a transcript."""


class PipelineBusy(PreconditionViolation):
    """Another stage is in progress."""
