"""Unit tests for subtitle timing and rendering."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from shortforge.analyzers.transcribe import transcribe
from shortforge.editors.captions import (
    build_cues,
    format_srt_time,
    format_vtt_time,
    render_srt,
    render_vtt,
    write_subtitles,
)
from shortforge.manifest import CaptionConfig
from shortforge.models import SubtitleCue


class TestBuildCues:
    def test_hello_world(self):
        cues = build_cues(["Hello.", "World."], [1.2, 0.8])
        assert render_srt(cues) == (
            "1\n0:00:00,0 --> 00:00:01,200\nHello.\n"
            "\n"
            "2\n00:00:01,200 --> 00:00:02,000\nWorld.\n"
        )

    def test_cues_are_contiguous(self):
        durations = [0.5, 2.25, 1.0, 3.333]
        cues = build_cues(["a", "b", "c", "d"], durations)
        assert cues[0].start == 0
        for prev, cue in zip(cues, cues[1:]):
            assert cue.start == prev.end
        assert cues[-1].end == pytest.approx(sum(durations))
        assert [c.index for c in cues] == [1, 2, 3, 4]

    def test_text_is_stripped(self):
        cues = build_cues(["  padded sentence  "], [1.0])
        assert cues[0].text == "padded sentence"

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="2 sentences but 1 audio durations"):
            build_cues(["one.", "two."], [1.0])

    def test_zero_length_narration_is_rejected(self):
        with pytest.raises(ValueError):
            build_cues(["silent."], [0.0])


class TestTimeFormat:
    def test_zero_is_literal(self):
        assert format_srt_time(0) == "0:00:00,0"

    def test_rounds_to_milliseconds(self):
        assert format_srt_time(1.2) == "00:00:01,200"
        assert format_srt_time(59.9996) == "00:01:00,000"
        assert format_srt_time(3723.5) == "01:02:03,500"

    def test_vtt_uses_dot(self):
        assert format_vtt_time(0) == "00:00:00.000"
        assert format_vtt_time(61.25) == "00:01:01.250"


class TestRender:
    def test_vtt(self):
        cues = [SubtitleCue(index=1, start=0.0, end=1.5, text="Hi.")]
        assert render_vtt(cues) == "WEBVTT\n\n00:00:00.000 --> 00:00:01.500\nHi.\n"

    def test_empty(self):
        assert render_srt([]) == ""


class TestWriteSubtitles:
    def test_writes_srt(self, tmp_path):
        cues = build_cues(["Hello.", "World."], [1.2, 0.8])
        path = write_subtitles(cues, tmp_path / "subs" / "out.srt")
        assert path.read_text(encoding="utf-8") == render_srt(cues)

    def test_replaces_existing(self, tmp_path):
        path = tmp_path / "out.srt"
        path.write_text("stale")
        write_subtitles(build_cues(["New."], [1.0]), path)
        assert "stale" not in path.read_text()

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ValueError, match="unknown subtitle format"):
            write_subtitles([], tmp_path / "out.ass", "ass")


class TestTranscribe:
    def test_segments_become_cues(self):
        mock_whisper = MagicMock()
        mock_whisper.load_model.return_value.transcribe.return_value = {
            "segments": [
                {"start": 0.0, "end": 1.1, "text": " Hello."},
                {"start": 1.1, "end": 1.1, "text": " "},
                {"start": 1.1, "end": 2.0, "text": " World."},
            ]
        }
        with patch.dict("sys.modules", {"whisper": mock_whisper}):
            cues = transcribe(Path("narration.mp3"), CaptionConfig(mode="whisper", model="tiny"))

        mock_whisper.load_model.assert_called_once_with("tiny")
        assert [(c.index, c.text) for c in cues] == [(1, "Hello."), (2, "World.")]
        assert cues[1].start == pytest.approx(1.1)
