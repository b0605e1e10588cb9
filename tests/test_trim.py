"""Unit tests for the clip trimmer."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from shortforge.editors.trim import parse_timestamp, trim_clip
from shortforge.models import ClipDescriptor


def _make_clip(duration: float = 20.0) -> ClipDescriptor:
    return ClipDescriptor(
        path=Path("clip.mp4"),
        duration=duration,
        fps=30.0,
        width=1920,
        height=1080,
        has_audio=False,
        codec_video="h264",
    )


class TestParseTimestamp:
    def test_number_passthrough(self):
        assert parse_timestamp(7) == 7.0
        assert parse_timestamp(2.5) == 2.5

    def test_hms_string(self):
        assert parse_timestamp("1:02:03.5") == pytest.approx(3723.5)

    def test_short_forms(self):
        assert parse_timestamp("2:30") == 150.0
        assert parse_timestamp("12.25") == 12.25

    def test_invalid(self):
        with pytest.raises(ValueError, match="invalid timestamp"):
            parse_timestamp("a:b:c")
        with pytest.raises(ValueError, match="invalid timestamp"):
            parse_timestamp("1:2:3:4")


@patch("shortforge.ffutil.subprocess.run", return_value=MagicMock(returncode=0))
class TestTrimClip:
    def test_range(self, mock_run):
        out = trim_clip(_make_clip(), 2, 7, Path("out.mp4"))
        assert out.duration == pytest.approx(5.0)
        assert out.path == Path("out.mp4")
        cmd = mock_run.call_args[0][0]
        assert cmd[cmd.index("-ss") + 1] == "2.000"
        assert cmd[cmd.index("-to") + 1] == "7.000"

    def test_end_defaults_to_duration(self, mock_run):
        out = trim_clip(_make_clip(20.0), 5, output_path=Path("out.mp4"))
        assert out.duration == pytest.approx(15.0)

    def test_negative_end_counts_from_clip_end(self, mock_run):
        out = trim_clip(_make_clip(20.0), 0, -4, Path("out.mp4"))
        assert out.duration == pytest.approx(16.0)

    def test_string_bounds(self, mock_run):
        out = trim_clip(_make_clip(120.0), "0:00:10", "0:01:00", Path("out.mp4"))
        assert out.duration == pytest.approx(50.0)

    def test_end_clamped_to_duration(self, mock_run):
        out = trim_clip(_make_clip(10.0), 4, 30, Path("out.mp4"))
        assert out.duration == pytest.approx(6.0)
        cmd = mock_run.call_args[0][0]
        assert cmd[cmd.index("-to") + 1] == "10.000"

    def test_full_range_keeps_duration(self, mock_run):
        clip = _make_clip(12.34)
        out = trim_clip(clip, 0, clip.duration, Path("out.mp4"))
        assert out.duration == pytest.approx(clip.duration)

    def test_degenerate_range_returns_original(self, mock_run):
        clip = _make_clip()
        assert trim_clip(clip, 5, 4, Path("out.mp4")) is clip
        mock_run.assert_not_called()

    def test_empty_range_returns_original(self, mock_run):
        clip = _make_clip(10.0)
        assert trim_clip(clip, 3, 3, Path("out.mp4")) is clip
        assert trim_clip(clip, 12, None, Path("out.mp4")) is clip
        mock_run.assert_not_called()

    def test_default_output_beside_source(self, mock_run):
        out = trim_clip(_make_clip(), 0, 1)
        assert out.path.parent == Path(".")
        assert out.path.name.startswith("clip_trim_")
        assert out.path != Path("clip.mp4")
