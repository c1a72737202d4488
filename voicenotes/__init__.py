"""
Voice-to-markdown notes package.

Modules:
- audio_capture: microphone recording utilities.
- transcription: speech-to-text client.
- formatting: transcript-to-markdown client.
- pipeline: controller coordinating capture, transcription and formatting.
- config: environment and terminology loading.
- app: CLI entry point.
"""
