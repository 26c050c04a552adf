"""Command-line interface for the video audio transcriber.

WHY: Users want one command that turns a video URL into a transcript.
The CLI wires together the full pipeline (API-key resolution, yt-dlp
metadata, audio-track selection, the size ceiling, a confirmation
prompt, the parallel chunked download, the Whisper upload, and output
saving) behind a single command.

HOW: Uses argparse to accept the video URL, an optional API key, an
optional output file, and download/transcription tuning flags. Runs the
async pipeline via asyncio.run(). Status messages go to stderr; the
transcript goes to stdout (and to --output when given).

RULES:
- Positional argument: video URL
- API key: --api-key, else OPENAI_API_KEY from the environment / .env
- Tracks of MAX_AUDIO_BYTES (25 MB) or more are refused before download
- Prompt "Transcribe '<title>'? [y/N]" unless --yes; anything but "y" exits 0
- Approximate track sizes are replaced by a HEAD probe before downloading
- Output file is written only after a successful transcription
- Known failures print "Error: ..." and exit 1; Ctrl-C exits 130
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from yt_transcriber.api.client import TranscriptionAPIError, WhisperClient
from yt_transcriber.api.models import TranscriptionRequest
from yt_transcriber.config import (
    AUDIO_EXTENSION,
    DOWNLOAD_CHUNK_SIZE,
    MAX_AUDIO_BYTES,
    TRANSCRIPTION_LANGUAGE,
    WHISPER_MODEL,
    load_api_key,
)
from yt_transcriber.core.downloader import ChunkedDownloader, DownloadError
from yt_transcriber.media.metadata import MetadataError, fetch_video_info, select_audio_track

logger = logging.getLogger(__name__)


def _status(msg: str, end: str = "\n") -> None:
    """Write a progress line to stderr, leaving stdout for the transcript.

    Flushes every time, because steps like "Fetching video metadata... "
    end without a newline until the step finishes.
    """
    print(msg, end=end, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _resolve_output_path(raw: Optional[str]) -> Optional[Path]:
    """Expand ``~`` in the output path and check its directory exists.

    WHY: Failing on a bad output path after a paid transcription would
    waste the result, so the path is validated first.
    """
    if not raw:
        return None
    path = Path(raw).expanduser()
    if not path.parent.is_dir():
        _fail("Output directory does not exist: {}".format(path.parent))
    return path


def _confirm(title: str) -> bool:
    """Ask the user whether to transcribe ``title``; default is no."""
    _status("Transcribe '{}'? [y/N] ".format(title), end="")
    answer = sys.stdin.readline()
    return answer.strip().lower() == "y"


def _format_mb(size: float) -> str:
    return "{:.2f} MB".format(size / 1000.0 / 1000.0)


async def _run_pipeline(args: argparse.Namespace) -> None:
    """Execute the full URL-to-transcript pipeline.

    WHY: This is the async core of the CLI. It orchestrates all steps
    from metadata lookup through transcription and saving.

    HOW: Resolves configuration first (key, output path), then calls the
    metadata, download, and transcription collaborators in order. Errors
    from any collaborator are reported as a single "Error: ..." line.

    RULES:
    - Validate key and output path before any network call
    - Refuse tracks over the size ceiling before prompting
    - Nothing is downloaded unless the user confirms (or --yes)
    """
    try:
        api_key = load_api_key(args.api_key)
    except ValueError as e:
        _fail(str(e))

    output_path = _resolve_output_path(args.output)

    try:
        _status("Fetching video metadata... ", end="")
        video = await fetch_video_info(args.url)
        _status("done.")

        track = select_audio_track(video.formats, ext=AUDIO_EXTENSION)
        logger.info("Selected %s track %s (%s)", track.ext, track.format_id, _format_mb(track.size))
        if track.size >= MAX_AUDIO_BYTES:
            _fail("Audio file is too large to transcribe, max {}, got {}".format(
                _format_mb(MAX_AUDIO_BYTES), _format_mb(track.size)
            ))

        if not args.yes and not _confirm(video.title):
            return

        async with ChunkedDownloader(
            chunk_size=args.chunk_size,
            max_concurrency=args.max_concurrency,
            retries=args.retries,
        ) as downloader:
            total_size = int(track.size)
            if track.size_is_approximate:
                total_size = await downloader.probe_size(track.url)
                if total_size >= MAX_AUDIO_BYTES:
                    _fail("Audio file is too large to transcribe, max {}, got {}".format(
                        _format_mb(MAX_AUDIO_BYTES), _format_mb(total_size)
                    ))

            _status("Downloading audio track... ", end="")
            audio = await downloader.download(
                track.url,
                total_size,
                on_status=(lambda line: logger.debug("%s", line)),
            )
            _status("done.")

        request = TranscriptionRequest(
            model=args.model,
            language=args.language or None,
            filename="audio.{}".format(track.ext),
        )
        _status("Transcribing... ", end="")
        async with WhisperClient(api_key) as client:
            transcript = await client.transcribe(audio, request)
        _status("done.")

    except (MetadataError, DownloadError, TranscriptionAPIError, httpx.HTTPError, ValueError) as e:
        logger.debug("Pipeline failed", exc_info=True)
        _fail(str(e))

    if output_path is not None:
        output_path.write_text(transcript, encoding="utf-8")
        _status("Saved transcript to {}".format(output_path))
    print(transcript)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("expected an integer, got '{}'".format(value))
    if number <= 0:
        raise argparse.ArgumentTypeError("expected a positive integer, got {}".format(number))
    return number


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("expected an integer, got '{}'".format(value))
    if number < 0:
        raise argparse.ArgumentTypeError("expected a non-negative integer, got {}".format(number))
    return number


def build_parser() -> argparse.ArgumentParser:
    """Describe the URL argument and the download and transcription flags.

    WHY: Tests check flag defaults and argument validation on the parser
    alone, without fetching metadata or touching the network.

    RULES:
    - Positional: url (required)
    - Optional: -k/--api-key, -o/--output, -y/--yes, -v/--verbose
    - Download tuning: --chunk-size, --max-concurrency, --retries
    - Transcription: --model, --language
    """
    parser = argparse.ArgumentParser(
        prog="yt_transcriber",
        description="Download a video's audio track in parallel chunks and "
                    "transcribe it with OpenAI Whisper.",
    )

    parser.add_argument(
        "url",
        metavar="URL",
        help="The URL of the video to transcribe.",
    )

    parser.add_argument(
        "-k", "--api-key",
        default=None,
        help="OpenAI API key (default: OPENAI_API_KEY from the environment or .env).",
    )

    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Path to write the transcript to (~ is expanded).",
    )

    parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Transcribe without asking for confirmation.",
    )

    parser.add_argument(
        "--model",
        default=WHISPER_MODEL,
        help="Transcription model (default: %(default)s).",
    )

    parser.add_argument(
        "--language",
        default=TRANSCRIPTION_LANGUAGE,
        help="ISO 639-1 language of the audio; empty string lets the API "
             "detect it (default: %(default)s).",
    )

    parser.add_argument(
        "--chunk-size",
        type=_positive_int,
        default=DOWNLOAD_CHUNK_SIZE,
        help="Bytes per ranged request (default: %(default)s).",
    )

    parser.add_argument(
        "--max-concurrency",
        type=_positive_int,
        default=None,
        help="Maximum chunk requests in flight (default: one per chunk).",
    )

    parser.add_argument(
        "--retries",
        type=_non_negative_int,
        default=0,
        help="Retries per chunk on network errors and 5xx (default: %(default)s).",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug output to stderr.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    WHY: This is the function that __main__.py and the console script call.

    RULES:
    - argv=None reads the real command line; tests pass a list
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        asyncio.run(_run_pipeline(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
