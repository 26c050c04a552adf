"""Async HTTP client for the OpenAI Whisper transcription endpoint.

WHY: Once the audio track is in memory it has to be posted to the
speech-to-text API and the transcript read back. This module keeps the
HTTP details (auth header, multipart layout, error mapping) behind one
small client class so the CLI and tests don't need to know them.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. The WhisperClient is
an async context manager. Enter it to get an authenticated client, exit
to close the connection pool. transcribe() sends one multipart POST to
/audio/transcriptions with the audio bytes and the TranscriptionRequest
fields.

RULES:
- Always use the async context manager (async with WhisperClient(key) as client:)
- The API key is passed in explicitly; this module never reads the environment
- Non-200 responses raise TranscriptionAPIError with status and body
- Transport failures propagate as httpx.HTTPError
- text/srt/vtt responses are returned as text; json formats return the
  "text" field
- on_status, when given, hears about the upload before it starts
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

import httpx

from yt_transcriber.api.models import TranscriptionRequest
from yt_transcriber.config import OPENAI_BASE_URL

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=30.0)


class TranscriptionAPIError(Exception):
    """Raised when the transcription API returns an error response.

    WHY: The CLI reports a rejected upload (401 bad key, 413 audio over
    the ceiling, 400 unsupported container) differently from a dropped
    connection, which surfaces as httpx.HTTPError instead.

    RULES:
    - status_code is the HTTP status of the /audio/transcriptions reply
    - message is the reply body as text, usually OpenAI's JSON error
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Transcription API error {status_code}: {message}")


class WhisperClient:
    """Async client for the /audio/transcriptions endpoint.

    WHY: Provides a typed interface for the one call the tool makes and
    handles auth and error wrapping.

    HOW: Wraps httpx.AsyncClient with Bearer token auth. Use as an async
    context manager to ensure the HTTP connection pool is properly closed.

    RULES:
    - Use as: async with WhisperClient(api_key) as client: ...
    - api_key is required and must be non-empty
    - base_url defaults to OPENAI_BASE_URL from config
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("WhisperClient requires a non-empty api_key")
        self._api_key = api_key
        self._base_url = (base_url or OPENAI_BASE_URL).rstrip("/")
        self._timeout = timeout or _DEFAULT_TIMEOUT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> WhisperClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "WhisperClient must be used as an async context manager: "
                "async with WhisperClient(api_key) as client: ..."
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        request: Optional[TranscriptionRequest] = None,
        on_status: Callable[[str], None] | None = None,
    ) -> str:
        """Upload audio bytes and return the transcript.

        WHY: The audio is already in memory (from the chunked downloader),
        so it is sent straight from the buffer with no temp file.

        HOW: Sends a multipart/form-data POST with the file part named
        after request.filename and the remaining fields from
        request.to_form_data().

        RULES:
        - Empty audio raises ValueError before any request
        - Raises TranscriptionAPIError on non-200 responses
        - Trailing newlines are stripped from text responses

        Args:
            audio: The complete audio file contents.
            request: Transcription options (defaults: whisper-1, English, text).
            on_status: Called once with the upload size before posting.

        Returns:
            The transcript text.
        """
        if not audio:
            raise ValueError("Cannot transcribe an empty audio buffer")

        client = self._ensure_client()
        request = request or TranscriptionRequest()
        if on_status:
            on_status("Uploading {:,} bytes for transcription...".format(len(audio)))

        logger.debug(
            "POST /audio/transcriptions model=%s language=%s format=%s",
            request.model, request.language, request.response_format,
        )
        resp = await client.post(
            "/audio/transcriptions",
            data=request.to_form_data(),
            files={"file": (request.filename, audio)},
        )

        if resp.status_code != 200:
            raise TranscriptionAPIError(resp.status_code, resp.text)

        if request.response_format in ("json", "verbose_json"):
            return resp.json()["text"]
        return resp.text.rstrip("\n")
