"""Configuration constants, API defaults, and .env loading.

WHY: The chunk size, the accepted audio container, the Whisper model and
language, and the 25 MB upload ceiling all shape how a video is fetched
and transcribed. Keeping them here lets a .env file retune a run without
touching the downloader or the client.

HOW: load_dotenv() runs at import, then each tunable is read with
os.getenv and falls back to a literal default. The
load_api_key() function resolves the OpenAI key exactly once, at the
edge of the program, and gives a clear error when it is missing.

RULES:
- API key is loaded from the CLI flag or .env, never hardcoded
- The key is resolved by the CLI and passed explicitly to the client
- DOWNLOAD_CHUNK_SIZE, AUDIO_EXTENSION, OPENAI_BASE_URL, WHISPER_MODEL and
  TRANSCRIPTION_LANGUAGE may be set in the environment
- MAX_AUDIO_BYTES is decimal (25 MB), matching the API's published limit
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

# .env in the working directory may supply OPENAI_API_KEY and overrides
load_dotenv()

# ---------------------------------------------------------------------------
# Chunked download
# ---------------------------------------------------------------------------

DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024
"""Byte length of each ranged GET (10 MiB); the last chunk may be shorter."""

DOWNLOAD_CHUNK_SIZE = int(os.getenv("DOWNLOAD_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE)))

# ---------------------------------------------------------------------------
# Audio track selection
# ---------------------------------------------------------------------------

AUDIO_EXTENSION = os.getenv("AUDIO_EXTENSION", "m4a")
"""Container extension accepted when picking an audio-only format."""

MAX_AUDIO_BYTES = 25 * 1000 * 1000
"""Upload ceiling of the transcription endpoint (25 MB)."""

# ---------------------------------------------------------------------------
# Transcription API defaults
# ---------------------------------------------------------------------------

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
WHISPER_MODEL = os.getenv("WHISPER_MODEL", "whisper-1")
TRANSCRIPTION_LANGUAGE = os.getenv("TRANSCRIPTION_LANGUAGE", "en")


def load_api_key(explicit: Optional[str] = None) -> str:
    """Resolve the OpenAI API key.

    WHY: Every transcription call needs a key. Resolving it once in the
    CLI, instead of deep inside the client, keeps the client testable
    and makes the source of the credential obvious.

    HOW: An explicit value (from --api-key) wins. Otherwise reads
    OPENAI_API_KEY from os.environ (populated by python-dotenv).

    RULES:
    - Raises ValueError if neither source yields a non-empty key
    - Surrounding whitespace (a stray newline in .env) is stripped
    """
    key = (explicit or os.getenv("OPENAI_API_KEY", "")).strip()
    if not key:
        raise ValueError(
            "OpenAI API key not configured. "
            "Pass --api-key or add OPENAI_API_KEY to the .env file."
        )
    return key
