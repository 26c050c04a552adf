"""Core download modules: byte-range planning and the chunked downloader.

WHY: The core package contains the one piece of real engineering in the
tool: splitting a remote file into byte ranges, fetching them
concurrently, and reassembling them in order. Everything else (metadata,
transcription, CLI) is glue around it.

HOW: ranges.py defines the data structures and the tiling function,
downloader.py runs the concurrent ranged GETs and assembles the result.

RULES:
- Assembly order comes from the range index, never completion order
- A download returns the full buffer or raises DownloadError
- No module-level mutable state; concurrent downloads are independent
"""

from yt_transcriber.core.downloader import (
    AssemblyError,
    ChunkedDownloader,
    ContentRangeError,
    DownloadError,
    LengthMismatchError,
    NetworkError,
    ProtocolError,
    download,
)
from yt_transcriber.core.ranges import ByteRange, ChunkResult, DownloadRequest, compute_ranges

__all__ = [
    "AssemblyError",
    "ByteRange",
    "ChunkResult",
    "ChunkedDownloader",
    "ContentRangeError",
    "DownloadError",
    "DownloadRequest",
    "LengthMismatchError",
    "NetworkError",
    "ProtocolError",
    "compute_ranges",
    "download",
]
