"""Video metadata package: yt-dlp extraction and audio-track selection.

WHY: The downloader only understands (url, total_size). Something has to
turn a video page URL into that pair; this package does it with yt-dlp.

HOW: metadata.py wraps YoutubeDL.extract_info in a thread and picks the
smallest audio track of the configured container.

RULES:
- All yt-dlp usage goes through this package
- Failures surface as MetadataError
"""

from yt_transcriber.media.metadata import (
    AudioTrack,
    MetadataError,
    VideoInfo,
    fetch_video_info,
    select_audio_track,
)

__all__ = [
    "AudioTrack",
    "MetadataError",
    "VideoInfo",
    "fetch_video_info",
    "select_audio_track",
]
