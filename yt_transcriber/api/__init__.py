"""Transcription API package: async HTTP interface to OpenAI Whisper.

WHY: The tool needs to post an in-memory audio file and read back the
transcript. This package encapsulates that communication behind an
async client class.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. WhisperClient sends
the request; TranscriptionRequest in models.py holds its options.

RULES:
- All transcription HTTP calls go through WhisperClient
- Authentication is via Bearer token passed in by the caller
"""

from yt_transcriber.api.client import TranscriptionAPIError, WhisperClient
from yt_transcriber.api.models import TranscriptionRequest

__all__ = ["TranscriptionAPIError", "TranscriptionRequest", "WhisperClient"]
