"""Turn raw transcripts into dated markdown notes with a hosted chat model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from .errors import EmptyTranscript, UpstreamError
from .openai_http import OpenAIHTTPClient

logger = logging.getLogger(__name__)

DEFAULT_FORMATTING_MODEL = "gpt-4o"
CHAT_COMPLETIONS_PATH = "chat/completions"


@dataclass
class FormattingResult:
    text: str
    model: str
    usage: Optional[dict] = None


class NoteFormatter(Protocol):
    async def format(
        self, transcript: str, terminology: str, date: Optional[str] = None
    ) -> FormattingResult:
        """Return the transcript rewritten as a markdown note."""


def today_iso() -> str:
    """Current UTC date in YYYY-MM-DD form."""
    return datetime.now(timezone.utc).date().isoformat()


def build_system_prompt(date: str, terminology: str) -> str:
    """Instruction block sent ahead of the transcript.

    The date becomes the note's H2 heading and the terminology block is
    embedded verbatim.
    """
    return (
        "You are a helpful assistant that formats spoken notes into well-structured markdown.\n"
        "Format the text with appropriate headers, bullet points, and other markdown elements.\n"
        "\n"
        f"The first header should be {date} in YYYY-MM-DD format as a H2 header (## {date}).\n"
        "Separate each section of today's notes with a H3 header.\n"
        "\n"
        "Custom terminology and context:\n"
        f"{terminology}\n"
        "\n"
        "When correcting the user's raw transcription with the terminology, "
        "do not explain the correction, just return the corrected text.\n"
    )


class OpenAIMarkdownFormatter:
    """Formats transcripts through the chat completions endpoint."""

    def __init__(self, http: OpenAIHTTPClient, model: Optional[str] = None) -> None:
        self._http = http
        self.model = model or DEFAULT_FORMATTING_MODEL

    def build_payload(self, transcript: str, terminology: str, date: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(date, terminology)},
                {"role": "user", "content": transcript},
            ],
        }

    async def format(
        self, transcript: str, terminology: str, date: Optional[str] = None
    ) -> FormattingResult:
        if not transcript or not transcript.strip():
            raise EmptyTranscript("Cannot format an empty transcript")

        note_date = date or today_iso()
        logger.info("Formatting %d chars for %s with %s", len(transcript), note_date, self.model)
        data = await self._http.post(
            CHAT_COMPLETIONS_PATH,
            json=self.build_payload(transcript, terminology, note_date),
        )
        return FormattingResult(text=_extract_content(data), model=self.model, usage=data.get("usage"))


def _extract_content(data: Dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamError(
            "Formatting response has no generated text", body=str(data)[:500]
        ) from exc
    if not isinstance(content, str) or not content.strip():
        raise UpstreamError("Formatting response has empty generated text", body=str(data)[:500])
    return content
