"""Shared test fixtures for the yt_transcriber test suite.

WHY: The downloader, CLI, and client tests all need an HTTP server that
honours Range requests and can be told to misbehave (delay a chunk,
return a short body, fail with a status or a transport error). Building
that once here keeps each test focused on the property it checks.

HOW: RangeServer is an async handler for httpx.MockTransport. It serves
slices of an in-memory payload, records every request, tracks how many
requests are in flight, and counts cancellations. Per-chunk behaviour is
keyed by the range's start offset.

RULES:
- No real network access anywhere in the suite
- Chunk overrides are callables taking the httpx.Request; they may
  return a Response or raise (e.g. httpx.ConnectError). Overrides with a
  body build it with streamed_response()
- Delays are per start offset, in seconds
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest


AUDIO_URL = "https://media.example.com/audio.m4a"


def make_payload(size: int) -> bytes:
    """Deterministic bytes whose value depends on position (detects reordering)."""
    return bytes((i * 7 + i // 251) % 256 for i in range(size))


def streamed_response(
    status_code: int,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
) -> httpx.Response:
    """A Response whose body is still unread, as it arrives from a real connection.

    ``httpx.Response(content=...)`` decodes and buffers the body at
    construction; the downloader reads raw wire bytes, which needs a
    response that has not been consumed yet.
    """
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(body))


def parse_range_header(value: str) -> tuple:
    """Parse ``bytes=<start>-<end>`` into an inclusive (start, end) pair."""
    assert value.startswith("bytes="), value
    start, end = value[len("bytes="):].split("-")
    return int(start), int(end)


class RangeServer:
    """In-memory HTTP server for ranged GETs, for httpx.MockTransport."""

    def __init__(
        self,
        payload: bytes,
        delays: Optional[Dict[int, float]] = None,
        overrides: Optional[Dict[int, Callable[[httpx.Request], httpx.Response]]] = None,
    ) -> None:
        self.payload = payload
        self.delays = dict(delays or {})
        self.overrides = dict(overrides or {})
        self.requests: List[httpx.Request] = []
        self.completed: List[int] = []
        self.cancelled = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def range_headers(self) -> List[str]:
        return [r.headers["Range"] for r in self.requests if "Range" in r.headers]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "HEAD":
            return httpx.Response(200, headers={"Content-Length": str(len(self.payload))})

        start, end = parse_range_header(request.headers["Range"])
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(start)
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)

            override = self.overrides.get(start)
            if override is not None:
                response = override(request)
            else:
                response = streamed_response(
                    206,
                    self.payload[start:end + 1],
                    headers={
                        "Content-Range": "bytes {}-{}/{}".format(start, end, len(self.payload)),
                    },
                )
            self.completed.append(start)
            return response
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())


@pytest.fixture
def range_server() -> Callable[..., RangeServer]:
    """Factory fixture: range_server(payload, delays=..., overrides=...)."""
    return RangeServer


@pytest.fixture
def sample_formats() -> List[Dict[str, Any]]:
    """A trimmed yt-dlp "formats" list with audio and video entries."""
    return [
        {"format_id": "139", "ext": "m4a", "url": "https://media.example.com/139",
         "filesize": 1_200_000, "acodec": "mp4a.40.5", "vcodec": "none"},
        {"format_id": "140", "ext": "m4a", "url": "https://media.example.com/140",
         "filesize": 3_400_000, "acodec": "mp4a.40.2", "vcodec": "none"},
        {"format_id": "251", "ext": "webm", "url": "https://media.example.com/251",
         "filesize": 900_000, "acodec": "opus", "vcodec": "none"},
        {"format_id": "18", "ext": "mp4", "url": "https://media.example.com/18",
         "filesize": 9_000_000, "acodec": "mp4a.40.2", "vcodec": "avc1"},
    ]


@pytest.fixture
def sample_info_dict(sample_formats) -> Dict[str, Any]:
    """The parts of a yt-dlp extract_info() result the tool reads."""
    return {
        "id": "dQw4w9WgXcQ",
        "title": "A Talk About Byte Ranges",
        "webpage_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "formats": sample_formats,
    }
