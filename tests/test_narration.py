"""Tests for script splitting and narration synthesis."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from shortforge.jobs import CancellationToken, JobCancelled
from shortforge.models import NarrationSegment
from shortforge.narration import (
    SynthesisError,
    chunk_text,
    concat_narration,
    split_sentences,
    synthesize_narration,
    synthesize_text,
)


class FakeVoice:
    """Returns the text itself as 'audio' and records every request."""

    def __init__(self, fail_on: str | None = None):
        self.fail_on = fail_on
        self.requests: list[str] = []
        self._lock = threading.Lock()

    def synthesize(self, text, voice):
        with self._lock:
            self.requests.append(text)
        if self.fail_on and self.fail_on in text:
            raise ConnectionError("voice service unavailable")
        return text.encode("utf-8")


class TestSplitSentences:
    def test_basic(self):
        assert split_sentences("Hello. World.") == ["Hello.", "World."]

    def test_mixed_punctuation_and_whitespace(self):
        script = "Is it real?  Yes!\nIt is.   "
        assert split_sentences(script) == ["Is it real?", "Yes!", "It is."]

    def test_decimal_is_not_a_boundary(self):
        assert split_sentences("Pi is 3.14 roughly. Ok.") == ["Pi is 3.14 roughly.", "Ok."]

    def test_empty(self):
        assert split_sentences("   ") == []


class TestChunkText:
    def test_respects_byte_limit(self):
        text = " ".join(["word"] * 50)
        chunks = chunk_text(text, 20)
        assert all(len(c.encode()) <= 20 for c in chunks)
        assert " ".join(chunks) == text

    def test_long_word_stands_alone(self):
        assert chunk_text("a " + "x" * 30 + " b", 10) == ["a", "x" * 30, "b"]

    def test_multibyte(self):
        chunks = chunk_text("é é é é", 4)
        assert chunks == ["é", "é", "é", "é"]


class TestSynthesizeText:
    def test_short_text_single_request(self):
        voice = FakeVoice()
        assert synthesize_text(voice, "Hello.", "en_us_001") == b"Hello."
        assert voice.requests == ["Hello."]

    def test_long_text_is_chunked(self):
        voice = FakeVoice()
        text = " ".join(["narration"] * 10)
        audio = synthesize_text(voice, text, "en_us_001", byte_limit=25)
        assert len(voice.requests) > 1
        assert audio == "".join(voice.requests).encode()

    def test_empty_audio(self):
        voice = MagicMock()
        voice.synthesize.return_value = b""
        with pytest.raises(SynthesisError):
            synthesize_text(voice, "Hello.", "en_us_001")


@patch("shortforge.narration.ffutil.probe_audio_duration")
class TestSynthesizeNarration:
    def test_keeps_sentence_order(self, mock_duration, tmp_path):
        mock_duration.side_effect = lambda path: len(path.read_bytes()) / 10
        sentences = [f"Sentence number {i}." for i in range(8)]

        segments = synthesize_narration(sentences, FakeVoice(), "v", tmp_path, max_workers=4)

        assert [s.sentence for s in segments] == sentences
        for seg in segments:
            assert seg.path.parent == tmp_path
            assert seg.path.read_bytes() == seg.sentence.encode()
            assert seg.duration == pytest.approx(len(seg.sentence) / 10)

    def test_failed_sentence_is_dropped(self, mock_duration, tmp_path):
        mock_duration.return_value = 1.0
        segments = synthesize_narration(
            ["One.", "Two.", "Three."], FakeVoice(fail_on="Two"), "v", tmp_path
        )
        assert [s.sentence for s in segments] == ["One.", "Three."]

    def test_cancelled_before_start(self, mock_duration, tmp_path):
        token = CancellationToken()
        token.cancel()
        voice = FakeVoice()
        with pytest.raises(JobCancelled):
            synthesize_narration(["One."], voice, "v", tmp_path, token=token)
        assert voice.requests == []


@patch("shortforge.narration.ffutil.concat_audio")
class TestConcatNarration:
    def test_joins_in_order(self, mock_concat, tmp_path):
        segments = [
            NarrationSegment("A.", tmp_path / "a.mp3", 1.0),
            NarrationSegment("B.", tmp_path / "b.mp3", 2.0),
        ]
        mock_concat.return_value = tmp_path / "out.mp3"
        assert concat_narration(segments, tmp_path / "out.mp3") == tmp_path / "out.mp3"
        mock_concat.assert_called_once_with(
            [tmp_path / "a.mp3", tmp_path / "b.mp3"], tmp_path / "out.mp3"
        )

    def test_nothing_to_join(self, mock_concat, tmp_path):
        with pytest.raises(ValueError):
            concat_narration([], tmp_path / "out.mp3")
