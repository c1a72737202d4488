"""Environment configuration utilities."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .formatting import DEFAULT_FORMATTING_MODEL
from .openai_http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from .transcription import DEFAULT_TRANSCRIPTION_MODEL

logger = logging.getLogger(__name__)

DEFAULT_TERMINOLOGY = """- Byterat (pronounced "byte-rat"): The company I work for which provides AI and a data pipeline to battery science labs
  - The team consists of Penny (CEO), Paul (CTO), Doel (Front end lead), Nawar (Data lead), and myself (Full stack lead)
- Ohm AI: The LLM integration that I am building for Byterat
- Jupyter Notebooks: The notebooks that I use to build the LLM integration
- JupyterLab: The UI for the Jupyter Notebooks (single user instance)
- JupyterHub: The service that I am using to host the Jupyter Notebooks
- Node: A single operation in the AI workflow
- Sync Agent: Agent installed on our customer's machines to send data into our cloud
- Enpower: Customer
- Li-S: Customer
- Indiana BIC: Customer (also referred to as just BIC)
- Arbin, Neware, Biologic, Bitrode, Maccor: Brands of cyclers that our customers use
- BDF: Battery Data Format
- DAG: Directed Acyclic Graph - used by Ohm AI
- Lovable, Bolt, Replit, Cursor: AI tools we use in daily workflow
- Prisma: ORM that I use to interact with the database
- React, Vite, Tailwind, Mantine, Framer: UI libraries
- Vercel, pgvector, Opensearch, Timescale, GraphQL, Mage: Backend third party services
- S3, SQS, SNS, EC2, ECR, Lambda, API Gateway: AWS services
"""


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, read once at start-up."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    formatting_model: str = DEFAULT_FORMATTING_MODEL
    timeout: float = DEFAULT_TIMEOUT
    terminology: str = DEFAULT_TERMINOLOGY


def load_environment(dotenv_path: Optional[Path] = None) -> None:
    """Load environment variables from a .env file if present."""
    default_path = Path(__file__).resolve().parent.parent / ".env"
    target = dotenv_path or default_path
    loaded = load_dotenv(dotenv_path=target, override=False)
    if loaded:
        logger.debug("Loaded environment variables from %s", target)
    else:
        logger.debug("No .env file found at %s (skipping)", target)

    if not os.getenv("OPENAI_API_KEY"):
        logger.warning(
            "OPENAI_API_KEY is not set. Transcription and formatting will fail until it is configured."
        )


def load_terminology(path: Optional[str | Path] = None) -> str:
    """Return the terminology block from ``path``, or the built-in default."""
    if not path:
        return DEFAULT_TERMINOLOGY
    return Path(path).expanduser().read_text(encoding="utf-8")


def load_settings() -> Settings:
    return Settings(
        api_key=os.getenv("OPENAI_API_KEY", ""),
        base_url=os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL,
        transcription_model=os.getenv("VOICENOTES_TRANSCRIPTION_MODEL") or DEFAULT_TRANSCRIPTION_MODEL,
        formatting_model=os.getenv("VOICENOTES_FORMATTING_MODEL") or DEFAULT_FORMATTING_MODEL,
        timeout=_parse_timeout(os.getenv("VOICENOTES_TIMEOUT")),
        terminology=load_terminology(os.getenv("VOICENOTES_TERMINOLOGY_FILE")),
    )


def _parse_timeout(raw: Optional[str]) -> float:
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid VOICENOTES_TIMEOUT=%r", raw)
        return DEFAULT_TIMEOUT
    if value <= 0:
        logger.warning("Ignoring non-positive VOICENOTES_TIMEOUT=%r", raw)
        return DEFAULT_TIMEOUT
    return value
