"""Parallel chunked downloader: concurrent ranged GETs, ordered assembly.

WHY: Audio tracks from video hosts are served as plain files that
support HTTP Range requests, but a single connection is often throttled.
Fetching fixed-size byte ranges concurrently over independent requests
and stitching them back together is much faster. The stitching is the
part that must never go wrong: the result has to be the exact byte
stream, whatever order the requests finish in.

HOW: The request is tiled into ByteRanges (see core.ranges). One
asyncio task per range streams its slice with httpx and validates the
status and byte count. Each task writes only its own pre-sized slot
(slots[range.index]), so assembly order comes from the index, never from
completion order. The parent waits with FIRST_EXCEPTION: on the first
failure every sibling task is cancelled and awaited before the error is
raised, so no task or connection outlives the call.

RULES:
- total_size == 0 returns b"" without any request
- Accepted statuses: 206 Partial Content, or 200 OK (length-checked)
- Chunks are requested with Accept-Encoding: identity and counted as raw
  wire bytes; a body shorter or longer than the range is a failure
- A 206 whose Content-Range names other bytes than requested is a failure
- Any chunk failure aborts the whole download; never a partial buffer
- No retries by default; retries=N retries transport errors, 429 and
  5xx with exponential backoff
- max_concurrency=None means one in-flight request per range
- The downloader only closes httpx clients it created itself
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import List, Optional, Sequence

import httpx

from yt_transcriber.config import DEFAULT_CHUNK_SIZE
from yt_transcriber.core.ranges import ByteRange, ChunkResult, DownloadRequest

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_ACCEPTED_STATUSES = frozenset({200, 206})
_RETRY_BACKOFF_FACTOR = 2.0
_DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=30.0)


class DownloadError(Exception):
    """Base class for every failure of a chunked download.

    WHY: Callers (the CLI) need one exception type to catch, while tests
    and logs benefit from knowing exactly which rule was broken.

    RULES:
    - byte_range is the failing ByteRange, or None when not chunk-specific
    """

    def __init__(self, message: str, byte_range: Optional[ByteRange] = None) -> None:
        self.byte_range = byte_range
        super().__init__(message)


class NetworkError(DownloadError):
    """Raised when the transport fails (connect, DNS, timeout, read)."""


class ProtocolError(DownloadError):
    """Raised when a chunk response has a status other than 200/206."""

    def __init__(self, status_code: int, byte_range: Optional[ByteRange] = None) -> None:
        self.status_code = status_code
        where = " for {}".format(byte_range.header_value) if byte_range else ""
        super().__init__(
            "Unexpected HTTP status {}{}".format(status_code, where), byte_range
        )


class LengthMismatchError(DownloadError):
    """Raised when a chunk's byte count differs from its range length.

    Signals a server that ignored the Range header, a truncated body, or
    a resource that changed while it was being downloaded.
    """

    def __init__(
        self,
        expected: int,
        received: int,
        byte_range: Optional[ByteRange] = None,
    ) -> None:
        self.expected = expected
        self.received = received
        where = " for {}".format(byte_range.header_value) if byte_range else ""
        super().__init__(
            "Expected {} bytes{}, received {}".format(expected, where, received),
            byte_range,
        )


class ContentRangeError(DownloadError):
    """Raised when a 206 response reports a different range than requested."""

    def __init__(self, content_range: str, byte_range: ByteRange) -> None:
        self.content_range = content_range
        super().__init__(
            "Server answered {} with Content-Range '{}'".format(
                byte_range.header_value, content_range
            ),
            byte_range,
        )


class AssemblyError(DownloadError):
    """Raised when the collected chunks cannot form the full buffer."""


class ChunkedDownloader:
    """Downloads a known-length resource as concurrent ranged GETs.

    WHY: Wraps the HTTP client lifecycle and the download tuning knobs
    (chunk size, concurrency bound, retries) so callers just ask for
    bytes.

    HOW: Use as an async context manager. Without an injected client it
    opens an httpx.AsyncClient on enter and closes it on exit. An
    injected client (shared pool, tests with MockTransport) is used as-is
    and left open.

    RULES:
    - Use as: async with ChunkedDownloader() as downloader: ...
    - chunk_size must be > 0; max_concurrency None or > 0; retries >= 0
    - Each download() call is self-contained: its own ranges, slots, tasks
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_concurrency: Optional[int] = None,
        retries: int = 0,
        retry_backoff_s: float = 0.5,
        timeout: Optional[httpx.Timeout] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer, got {}".format(chunk_size))
        if max_concurrency is not None and max_concurrency <= 0:
            raise ValueError(
                "max_concurrency must be positive or None, got {}".format(max_concurrency)
            )
        if retries < 0:
            raise ValueError("retries must be non-negative, got {}".format(retries))

        self._client = client
        self._owns_client = client is None
        self._chunk_size = chunk_size
        self._max_concurrency = max_concurrency
        self._retries = retries
        self._retry_backoff_s = retry_backoff_s
        self._timeout = timeout or _DEFAULT_TIMEOUT

    async def __aenter__(self) -> ChunkedDownloader:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "ChunkedDownloader must be used as an async context manager: "
                "async with ChunkedDownloader() as downloader: ..."
            )
        return self._client

    async def download(
        self,
        url: str,
        total_size: int,
        chunk_size: Optional[int] = None,
        on_status: Callable[[str], None] | None = None,
    ) -> bytes:
        """Fetch ``total_size`` bytes of ``url`` and return them in order.

        WHY: This is the single entry point of the core. The caller has a
        URL and a trusted length and wants either every byte or an error.

        HOW: Plans the ranges, spawns one task per range, waits for all of
        them (cancelling the rest on the first failure), then joins the
        slots in index order and checks the final length.

        RULES:
        - Returns b"" for total_size == 0 without touching the network
        - Raises DownloadError (or a subclass) on any chunk failure
        - Propagates asyncio.CancelledError after cancelling every task

        Args:
            url: Absolute URL of a resource that honours Range requests.
            total_size: Exact byte length reported by the metadata query.
            chunk_size: Overrides the downloader's chunk size for this call.
            on_status: Optional callback for human-readable progress lines.

        Returns:
            A new bytes object of length total_size.
        """
        request = DownloadRequest(
            url=url,
            total_size=total_size,
            chunk_size=self._chunk_size if chunk_size is None else chunk_size,
        )
        ranges = request.ranges()
        if not ranges:
            logger.debug("Nothing to download for %s (total_size=0)", url)
            return b""

        client = self._ensure_client()
        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None
        )
        slots: List[Optional[bytes]] = [None] * len(ranges)

        logger.info(
            "Downloading %d bytes in %d chunk(s) of up to %d bytes",
            request.total_size, len(ranges), request.chunk_size,
        )
        if on_status:
            on_status("Downloading {:,} bytes in {} chunk(s)...".format(
                request.total_size, len(ranges)
            ))

        async def _fill_slot(byte_range: ByteRange) -> None:
            result = await self._fetch_with_retry(client, request.url, byte_range, semaphore)
            slots[byte_range.index] = result.data
            if on_status:
                on_status("  Chunk {}/{} done ({})".format(
                    byte_range.index + 1, len(ranges), byte_range.header_value
                ))

        tasks = [
            asyncio.create_task(_fill_slot(r), name="chunk-{}".format(r.index))
            for r in ranges
        ]
        await _wait_all_or_fail_fast(tasks)

        data = _assemble(slots, ranges, request.total_size)
        logger.info("Assembled %d bytes from %d chunk(s)", len(data), len(ranges))
        return data

    async def probe_size(self, url: str) -> int:
        """Ask the server for the exact byte length of ``url``.

        WHY: yt-dlp sometimes only knows an approximate size. Ranged
        assembly needs the exact length or the last chunk will not match.

        HOW: HEAD request, reading Content-Length.

        RULES:
        - httpx.RequestError -> NetworkError
        - status other than 200 -> ProtocolError
        - missing or non-numeric Content-Length -> DownloadError
        """
        client = self._ensure_client()
        try:
            response = await client.head(url, headers={"Accept-Encoding": "identity"})
        except httpx.RequestError as exc:
            raise NetworkError("Size probe failed: {}".format(exc)) from exc

        if response.status_code != 200:
            raise ProtocolError(response.status_code)

        length = response.headers.get("Content-Length", "")
        if not length.isdigit():
            raise DownloadError("Server did not report a Content-Length")
        logger.debug("Probed size of %s: %s bytes", url, length)
        return int(length)

    async def _fetch_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        byte_range: ByteRange,
        semaphore: Optional[asyncio.Semaphore],
    ) -> ChunkResult:
        attempt = 0
        while True:
            try:
                if semaphore is None:
                    return await _fetch_chunk(client, url, byte_range)
                async with semaphore:
                    return await _fetch_chunk(client, url, byte_range)
            except DownloadError as exc:
                if attempt >= self._retries or not _is_retryable(exc):
                    raise
                delay = self._retry_backoff_s * (_RETRY_BACKOFF_FACTOR ** attempt)
                attempt += 1
                logger.warning(
                    "Chunk %d (%s) failed: %s; retry %d/%d in %.1fs",
                    byte_range.index, byte_range.header_value, exc,
                    attempt, self._retries, delay,
                )
                await asyncio.sleep(delay)


async def download(
    url: str,
    total_size: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    client: Optional[httpx.AsyncClient] = None,
    on_status: Callable[[str], None] | None = None,
) -> bytes:
    """Download ``url`` as concurrent ranged GETs with default settings.

    Convenience wrapper around ChunkedDownloader for one-off calls. An
    empty resource short-circuits before any HTTP client is opened.
    """
    request = DownloadRequest(url=url, total_size=total_size, chunk_size=chunk_size)
    if request.total_size == 0:
        return b""
    async with ChunkedDownloader(client=client, chunk_size=request.chunk_size) as downloader:
        return await downloader.download(request.url, request.total_size, on_status=on_status)


# ---------------------------------------------------------------------------
# Chunk fetching and assembly (module-private)
# ---------------------------------------------------------------------------


async def _fetch_chunk(
    client: httpx.AsyncClient,
    url: str,
    byte_range: ByteRange,
) -> ChunkResult:
    """Issue one ranged GET and return exactly the requested bytes.

    WHY: Each range is an independent request; its failure modes
    (transport, status, length) map onto the error taxonomy here so the
    orchestration code only deals with DownloadError.

    HOW: Streams the raw body so an oversized response is rejected as soon
    as it passes the expected length, instead of being buffered whole.
    Range offsets address the stored representation, so content coding is
    refused up front and the body is never decoded.

    RULES:
    - httpx.RequestError -> NetworkError
    - status not in {200, 206} -> ProtocolError
    - 206 with a Content-Range other than the requested one -> ContentRangeError
    - received bytes != range length -> LengthMismatchError
    """
    expected = byte_range.length
    buffer = bytearray()
    try:
        async with client.stream(
            "GET",
            url,
            headers={"Range": byte_range.header_value, "Accept-Encoding": "identity"},
        ) as response:
            if response.status_code not in _ACCEPTED_STATUSES:
                raise ProtocolError(response.status_code, byte_range)
            if response.status_code == 206:
                _check_content_range(response.headers.get("Content-Range"), byte_range)
            async for piece in response.aiter_raw():
                buffer.extend(piece)
                if len(buffer) > expected:
                    raise LengthMismatchError(expected, len(buffer), byte_range)
    except httpx.RequestError as exc:
        raise NetworkError(
            "Request for {} failed: {}".format(byte_range.header_value, exc),
            byte_range,
        ) from exc

    if len(buffer) != expected:
        raise LengthMismatchError(expected, len(buffer), byte_range)

    logger.debug("Fetched chunk %d (%s)", byte_range.index, byte_range.header_value)
    return ChunkResult(byte_range=byte_range, data=bytes(buffer))


def _check_content_range(value: Optional[str], byte_range: ByteRange) -> None:
    """Compare a Content-Range header such as ``bytes 0-9/95`` with the request.

    An absent header is accepted; the length check still applies.
    """
    if value is None:
        return
    unit, _, spec = value.strip().partition(" ")
    span = spec.split("/", 1)[0]
    if unit != "bytes" or span != "{}-{}".format(byte_range.start, byte_range.end):
        raise ContentRangeError(value, byte_range)


def _is_retryable(exc: DownloadError) -> bool:
    if isinstance(exc, NetworkError):
        return True
    if isinstance(exc, ProtocolError):
        return exc.status_code == 429 or exc.status_code >= 500
    return False


async def _wait_all_or_fail_fast(tasks: Sequence[asyncio.Task]) -> None:
    """Wait for every task; on the first failure cancel and drain the rest.

    WHY: One failed chunk dooms the download, so there is no point
    keeping the other requests open. Cancelled tasks are still awaited so
    their connections are released before the error reaches the caller.

    RULES:
    - Raises the failure of the lowest-index failed task
    - If the caller is cancelled, all tasks are cancelled and drained
      before CancelledError propagates
    """
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("Cancelled %d in-flight chunk(s) after a failure", len(pending))

    # Read every exception so asyncio does not warn about unretrieved ones.
    failures = [
        task.exception() for task in tasks
        if task in done and not task.cancelled() and task.exception() is not None
    ]
    if failures:
        raise failures[0]


def _assemble(
    slots: Sequence[Optional[bytes]],
    ranges: Sequence[ByteRange],
    total_size: int,
) -> bytes:
    """Join per-range slots in index order into one new buffer.

    RULES:
    - Every slot must be filled, else AssemblyError naming the ranges
    - The joined length must equal total_size, else AssemblyError
    """
    missing = [r.header_value for r, data in zip(ranges, slots) if data is None]
    if missing:
        raise AssemblyError(
            "No data collected for {} chunk(s): {}".format(len(missing), ", ".join(missing))
        )

    data = b"".join(slots)  # type: ignore[arg-type]
    if len(data) != total_size:
        raise AssemblyError(
            "Assembled {} bytes, expected {}".format(len(data), total_size)
        )
    return data
