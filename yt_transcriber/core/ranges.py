"""Byte-range planning dataclasses for the chunked downloader.

WHY: The downloader splits one remote resource into many ranged GETs
and must put the pieces back together in exactly the source byte order.
Making the plan explicit (a request, its ranges, and the per-range
results) keeps the concurrency code small and lets the tiling rules
be tested without any network.

HOW: Three frozen dataclasses and one pure function:
  DownloadRequest: url + total_size + chunk_size, validated on creation
  ByteRange      : one inclusive [start, end] slice with its slot index
  ChunkResult    : the bytes received for one ByteRange
  compute_ranges : tiles [0, total_size) into ByteRanges

RULES:
- Ranges are disjoint, ascending, contiguous, and cover [0, total_size)
- Every range is chunk_size long except possibly the last (shorter)
- total_size == 0 produces no ranges
- ByteRange.index is the range's position in the tiling and is the
  assembly slot it fills
- end is inclusive, matching the HTTP Range header
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from yt_transcriber.config import DEFAULT_CHUNK_SIZE


@dataclass(frozen=True)
class ByteRange:
    """One inclusive byte slice of the remote resource.

    RULES:
    - index: zero-based position in the tiling (assembly slot)
    - start/end: zero-indexed, end inclusive (end >= start)
    """

    index: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def header_value(self) -> str:
        """Value for the ``Range`` request header, e.g. ``bytes=0-9``."""
        return "bytes={}-{}".format(self.start, self.end)


@dataclass(frozen=True)
class DownloadRequest:
    """A single download invocation: what to fetch and how to split it.

    WHY: Bundles the three inputs of a download so they are validated
    once, up front, before any task is spawned.

    HOW: Frozen dataclass; __post_init__ rejects impossible values.

    RULES:
    - total_size must be >= 0 (trusted as the resource's exact length)
    - chunk_size must be > 0
    - Raises ValueError on violation
    """

    url: str
    total_size: int
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.total_size < 0:
            raise ValueError(
                "total_size must be non-negative, got {}".format(self.total_size)
            )
        if self.chunk_size <= 0:
            raise ValueError(
                "chunk_size must be a positive integer, got {}".format(self.chunk_size)
            )

    def ranges(self) -> List[ByteRange]:
        return compute_ranges(self.total_size, self.chunk_size)


@dataclass(frozen=True)
class ChunkResult:
    """Bytes received for one ByteRange.

    Produced by exactly one fetch task and consumed once by assembly.
    """

    byte_range: ByteRange
    data: bytes


def compute_ranges(total_size: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[ByteRange]:
    """Tile [0, total_size) into consecutive inclusive byte ranges.

    WHY: Each range becomes one concurrent ranged GET. The tiling is the
    contract assembly relies on, so it is computed in one place.

    HOW: Steps through the resource in chunk_size strides; the final
    range is clamped to total_size - 1.

    RULES:
    - chunk_size=10, total_size=25 -> [0,9], [10,19], [20,24]
    - total_size == chunk_size -> exactly one range
    - total_size == 0 -> []
    - Raises ValueError for negative total_size or non-positive chunk_size

    Args:
        total_size: Exact byte length of the resource.
        chunk_size: Maximum bytes per range.

    Returns:
        Ranges in ascending order, index 0..n-1.
    """
    if total_size < 0:
        raise ValueError("total_size must be non-negative, got {}".format(total_size))
    if chunk_size <= 0:
        raise ValueError("chunk_size must be a positive integer, got {}".format(chunk_size))

    ranges: List[ByteRange] = []
    for index, start in enumerate(range(0, total_size, chunk_size)):
        end = min(start + chunk_size, total_size) - 1
        ranges.append(ByteRange(index=index, start=start, end=end))
    return ranges
