"""Video metadata resolution and audio-track selection via yt-dlp.

WHY: The downloader needs a direct media URL and its exact byte length.
yt-dlp knows how to extract both from a video page, but returns a large
untyped dict with many formats. This module turns that into a typed
VideoInfo and picks the one audio track worth downloading.

HOW: fetch_video_info() runs YoutubeDL.extract_info(download=False) in a
worker thread (yt-dlp is blocking) and validates the fields we rely on.
select_audio_track() filters formats by container extension, keeps only
those with a known size and URL, and returns the smallest.

RULES:
- Missing title/formats or a playlist URL -> MetadataError, never a crash
- yt-dlp's own DownloadError is wrapped into MetadataError
- Size is filesize, falling back to filesize_approx
- Smallest matching track wins (the transcription API caps uploads
  at 25 MB, so the smallest track is the most likely to fit)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yt_dlp
from yt_dlp.utils import DownloadError as YtDlpDownloadError

from yt_transcriber.config import AUDIO_EXTENSION

logger = logging.getLogger(__name__)

_YDL_OPTIONS: Dict[str, Any] = {
    "quiet": True,
    "no_warnings": True,
    "skip_download": True,
    "noplaylist": True,
}


class MetadataError(Exception):
    """Raised when video metadata is missing, unusable, or unavailable."""


@dataclass(frozen=True)
class AudioTrack:
    """One downloadable audio format.

    RULES:
    - url: direct media URL that honours Range requests
    - size: bytes, exact when size_is_approximate is False
    """

    url: str
    ext: str
    size: float
    format_id: Optional[str] = None
    size_is_approximate: bool = False


@dataclass
class VideoInfo:
    """The subset of yt-dlp's info dict the tool uses."""

    title: str
    webpage_url: str
    video_id: Optional[str] = None
    formats: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_info_dict(cls, info: Dict[str, Any], url: str) -> VideoInfo:
        """Build a VideoInfo from yt-dlp's extract_info() result.

        RULES:
        - Playlists (an "entries" key) are rejected
        - title and formats are required
        """
        if info.get("entries") is not None:
            raise MetadataError("URL points to a playlist; pass a single video URL")

        title = info.get("title")
        if not title:
            raise MetadataError("Missing video title")

        formats = info.get("formats")
        if not formats:
            raise MetadataError("Missing video formats")

        return cls(
            title=str(title),
            webpage_url=info.get("webpage_url") or url,
            video_id=info.get("id"),
            formats=list(formats),
        )


async def fetch_video_info(url: str) -> VideoInfo:
    """Resolve a video page URL into a VideoInfo.

    WHY: extract_info is synchronous and can take seconds; running it in
    a thread keeps the event loop free.

    HOW: asyncio.to_thread around a short-lived YoutubeDL instance.

    Raises:
        MetadataError: extraction failed or required fields are missing.
    """
    logger.debug("Extracting metadata for %s", url)
    try:
        info = await asyncio.to_thread(_extract_info, url)
    except YtDlpDownloadError as exc:
        raise MetadataError("Failed to fetch video metadata: {}".format(exc)) from exc

    if not isinstance(info, dict):
        raise MetadataError("yt-dlp returned no metadata for {}".format(url))
    return VideoInfo.from_info_dict(info, url)


def _extract_info(url: str) -> Optional[Dict[str, Any]]:
    with yt_dlp.YoutubeDL(dict(_YDL_OPTIONS)) as ydl:
        return ydl.extract_info(url, download=False)


def select_audio_track(
    formats: List[Dict[str, Any]],
    ext: str = AUDIO_EXTENSION,
) -> AudioTrack:
    """Pick the smallest format with the given extension, known size and URL.

    WHY: Only formats with a known size can be split into byte ranges,
    and only ones with a direct URL can be fetched at all.

    HOW: Filter, then a stable sort by size; ties keep yt-dlp's order.

    RULES:
    - ext comparison is exact (yt-dlp reports lowercase extensions)
    - filesize is preferred; filesize_approx is the fallback
    - Raises MetadataError("No suitable audio tracks found") when none match

    Args:
        formats: The "formats" list from yt-dlp's info dict.
        ext: Container extension to accept (default from config, "m4a").

    Returns:
        The smallest matching AudioTrack.
    """
    candidates: List[AudioTrack] = []
    for fmt in formats:
        if fmt.get("ext") != ext:
            continue
        url = fmt.get("url")
        exact = fmt.get("filesize")
        approx = fmt.get("filesize_approx")
        size = exact if exact is not None else approx
        if size is None or not url:
            continue
        candidates.append(AudioTrack(
            url=url,
            ext=ext,
            size=float(size),
            format_id=fmt.get("format_id"),
            size_is_approximate=exact is None,
        ))

    if not candidates:
        raise MetadataError("No suitable audio tracks found")

    candidates.sort(key=lambda track: track.size)
    chosen = candidates[0]
    logger.debug(
        "Selected format %s (%.0f bytes%s) out of %d candidate(s)",
        chosen.format_id, chosen.size,
        ", approximate" if chosen.size_is_approximate else "",
        len(candidates),
    )
    return chosen
