"""Video audio transcriber: parallel chunked download plus Whisper.

WHY: Turning a video URL into text means fetching its audio track and
posting it to a speech-to-text API. The audio download dominates the
wall-clock time on throttled hosts, so it is split into byte ranges that
are fetched concurrently and reassembled in order.

HOW: Three-stage pipeline: resolve (yt-dlp metadata and track
selection), download (core chunked downloader), transcribe (Whisper API
client). Each stage is independently testable; the CLI wires them.

RULES:
- The downloader returns the complete buffer or raises; never partial data
- Credentials are resolved once by the CLI and passed explicitly
- All HTTP goes through httpx
"""

__version__ = "0.1.0"
