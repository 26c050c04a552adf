"""Tests for configuration constants and API-key resolution."""

import pytest

from yt_transcriber.config import DEFAULT_CHUNK_SIZE, MAX_AUDIO_BYTES, load_api_key


class TestLoadApiKey:

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
        assert load_api_key("sk-explicit") == "sk-explicit"

    def test_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "  sk-from-env \n")
        assert load_api_key() == "sk-from-env"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_key_raises(self, monkeypatch, value):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            load_api_key(value)


def test_limits():
    assert DEFAULT_CHUNK_SIZE == 10 * 1024 * 1024
    assert MAX_AUDIO_BYTES == 25_000_000
