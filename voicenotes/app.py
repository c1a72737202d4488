"""CLI entrypoint: record spoken notes and turn them into markdown."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace

from .audio_capture import AudioCaptureConfig, StreamingMicrophoneRecorder, list_input_devices
from .config import Settings, load_environment, load_settings, load_terminology
from .errors import VoiceNotesError
from .formatting import OpenAIMarkdownFormatter
from .openai_http import OpenAIHTTPClient
from .pipeline import PipelineController, PipelineSnapshot, PipelineState
from .transcription import OpenAIWhisperTranscriber

logger = logging.getLogger("voicenotes")

HELP = "[r] record  [f] format to markdown  [c] clear  [s] show  [t] terminology  [q] quit"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dictate notes and format them as markdown.")
    parser.add_argument("--sample-rate", type=int, default=16_000, help="Audio sample rate")
    parser.add_argument("--channels", type=int, default=1, help="Number of audio channels")
    parser.add_argument("--device", type=str, default=None, help="Input device name or index")
    parser.add_argument("--list-devices", action="store_true", help="List input devices and exit")
    parser.add_argument("--transcription-model", type=str, default=None, help="Override the transcription model id")
    parser.add_argument("--formatting-model", type=str, default=None, help="Override the chat model id")
    parser.add_argument("--terminology-file", type=str, default=None, help="Plain-text terminology block")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def build_controller(settings: Settings, capture: AudioCaptureConfig) -> PipelineController:
    http = OpenAIHTTPClient(settings.api_key, base_url=settings.base_url, timeout=settings.timeout)
    return PipelineController(
        recorder=StreamingMicrophoneRecorder(capture),
        transcriber=OpenAIWhisperTranscriber(http, model=settings.transcription_model),
        formatter=OpenAIMarkdownFormatter(http, model=settings.formatting_model),
        terminology=settings.terminology,
    )


def render(snapshot: PipelineSnapshot) -> None:
    status = snapshot.status
    if status.state is PipelineState.ERROR:
        hint = " (retry with the same command)" if status.retriable else ""
        print(f"[error] {status.reason}{hint}")
    elif status.busy:
        print(f"[{status.state.value}...]")
    elif snapshot.formatted_note:
        print(f"\n{snapshot.formatted_note}\n")
    elif snapshot.transcript:
        print(f"\nTranscript:\n{snapshot.transcript}\n")


async def run(controller: PipelineController) -> int:
    controller.subscribe(render)
    print(HELP)
    while True:
        try:
            command = (await asyncio.to_thread(input, "> ")).strip().lower()
        except EOFError:
            return 0

        try:
            if command == "r":
                status = await controller.start_capture()
                if status.state is PipelineState.CAPTURING:
                    try:
                        await asyncio.to_thread(input, "Recording... press Enter to stop.")
                        await controller.stop_capture()
                    except EOFError:
                        return 0
                    finally:
                        if controller.status.state is PipelineState.CAPTURING:
                            controller.cancel_capture()
            elif command == "f":
                await controller.format_to_markdown()
            elif command == "c":
                controller.clear()
                print("Cleared.")
            elif command == "s":
                render(controller.snapshot())
            elif command == "t":
                print(controller.terminology or "(no terminology configured)")
            elif command == "q":
                return 0
            elif command:
                print(HELP)
        except VoiceNotesError as exc:
            print(f"[rejected] {exc}")


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    if args.list_devices:
        for device in list_input_devices():
            print(f"{device.index}: {device.name} ({device.channels} ch, {device.default_sample_rate:.0f} Hz)")
        return 0

    load_environment()
    settings = load_settings()
    overrides = {}
    if args.transcription_model:
        overrides["transcription_model"] = args.transcription_model
    if args.formatting_model:
        overrides["formatting_model"] = args.formatting_model
    if args.timeout:
        overrides["timeout"] = args.timeout
    if args.terminology_file:
        overrides["terminology"] = load_terminology(args.terminology_file)
    settings = replace(settings, **overrides)

    device = int(args.device) if args.device and args.device.isdigit() else args.device
    capture = AudioCaptureConfig(sample_rate=args.sample_rate, channels=args.channels, device=device)
    controller = build_controller(settings, capture)
    try:
        return asyncio.run(run(controller))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
