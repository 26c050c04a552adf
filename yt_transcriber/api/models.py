"""Transcription request dataclass for the Whisper API.

WHY: The /audio/transcriptions endpoint takes a handful of multipart
form fields next to the audio file. A typed request object keeps the
defaults (model, language, output format, temperature) in one place and
makes the form encoding testable without HTTP.

HOW: A frozen dataclass whose fields map 1:1 to form fields, plus the
filename hint sent with the file part. to_form_data() renders the
non-file fields as strings.

RULES:
- Defaults come from config (whisper-1, English), text output, temperature 0
- prompt is only sent when set
- filename is the multipart file name; its extension tells the API the
  container format
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from yt_transcriber.config import TRANSCRIPTION_LANGUAGE, WHISPER_MODEL

RESPONSE_FORMATS = frozenset({"text", "json", "verbose_json", "srt", "vtt"})
"""Formats the endpoint accepts for ``response_format``."""


@dataclass(frozen=True)
class TranscriptionRequest:
    """Options for one transcription call.

    RULES:
    - response_format must be one of RESPONSE_FORMATS (ValueError otherwise)
    - temperature must be within [0, 1]
    """

    model: str = WHISPER_MODEL
    language: Optional[str] = TRANSCRIPTION_LANGUAGE
    response_format: str = "text"
    temperature: float = 0.0
    filename: str = "audio.m4a"
    prompt: Optional[str] = None

    def __post_init__(self) -> None:
        if self.response_format not in RESPONSE_FORMATS:
            raise ValueError(
                "Unsupported response_format '{}'. Expected one of: {}".format(
                    self.response_format, ", ".join(sorted(RESPONSE_FORMATS))
                )
            )
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(
                "temperature must be between 0 and 1, got {}".format(self.temperature)
            )

    def to_form_data(self) -> Dict[str, str]:
        """Render the non-file multipart fields."""
        data = {
            "model": self.model,
            "response_format": self.response_format,
            "temperature": str(self.temperature),
        }
        if self.language:
            data["language"] = self.language
        if self.prompt:
            data["prompt"] = self.prompt
        return data
