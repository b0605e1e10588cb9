"""Unit tests for the frame-by-frame crop pipeline."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from shortforge.editors.framecrop import FrameCropError, FrameCropPipeline
from shortforge.ffutil import TranscodeError
from shortforge.models import ClipDescriptor


def _make_clip() -> ClipDescriptor:
    return ClipDescriptor(
        path=Path("src.mp4"),
        duration=2.0,
        fps=30.0,
        width=64,
        height=48,
        has_audio=True,
        codec_video="h264",
    )


def _write_frames(directory: Path, count: int, size=(64, 48)) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for i in range(1, count + 1):
        Image.new("RGB", size, (i * 10, 0, 0)).save(directory / f"frame-{i:05d}.png")


class TestStaging:
    def test_pattern_is_zero_padded(self, tmp_path):
        pipeline = FrameCropPipeline(tmp_path)
        assert pipeline.pattern == tmp_path / "frame-%05d.png"

    def test_frames_sorted_in_playback_order(self, tmp_path):
        _write_frames(tmp_path, 12)
        names = [p.name for p in FrameCropPipeline(tmp_path).frames()]
        assert names[0] == "frame-00001.png"
        assert names[9] == "frame-00010.png"
        assert names[-1] == "frame-00012.png"

    def test_clean_creates_and_empties(self, tmp_path):
        staging = tmp_path / "frames"
        _write_frames(staging, 3)
        FrameCropPipeline(staging).clean()
        assert staging.is_dir()
        assert list(staging.iterdir()) == []

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(ValueError, match="unsupported frame format"):
            FrameCropPipeline(tmp_path, frame_format="gif")


class TestCropFrames:
    def test_crops_from_top_left(self, tmp_path):
        _write_frames(tmp_path, 3, size=(64, 48))
        count = FrameCropPipeline(tmp_path).crop_frames(32, 16)
        assert count == 3
        for frame in sorted(tmp_path.glob("*.png")):
            with Image.open(frame) as image:
                assert image.size == (32, 16)

    def test_unreadable_frame_aborts_batch(self, tmp_path):
        _write_frames(tmp_path, 2)
        (tmp_path / "frame-00003.png").write_bytes(b"not an image")
        with pytest.raises(FrameCropError, match="frame-00003.png"):
            FrameCropPipeline(tmp_path).crop_frames(32, 16)


class TestRun:
    def test_all_steps(self, tmp_path):
        staging = tmp_path / "frames"
        pipeline = FrameCropPipeline(staging)

        def fake_extract(input_path, pattern):
            _write_frames(staging, 4)

        with patch("shortforge.editors.framecrop.ffutil.extract_frames", side_effect=fake_extract), \
                patch("shortforge.editors.framecrop.ffutil.encode_frames") as mock_encode:
            out = pipeline.run(_make_clip(), 32, 16, tmp_path / "out.mp4", fps=24)

        mock_encode.assert_called_once_with(pipeline.pattern, 24, tmp_path / "out.mp4")
        assert (out.width, out.height) == (32, 16)
        assert out.fps == 24.0
        assert out.has_audio is False
        assert out.path == tmp_path / "out.mp4"
        assert list(staging.iterdir()) == []

    @patch("shortforge.ffutil.subprocess.run")
    def test_decode_failure_surfaces_and_cleans(self, mock_run, tmp_path):
        mock_run.return_value = MagicMock(returncode=1, stderr="moov atom not found")
        staging = tmp_path / "frames"
        with pytest.raises(TranscodeError, match="moov atom not found"):
            FrameCropPipeline(staging).run(_make_clip(), 32, 16, tmp_path / "out.mp4")
        assert list(staging.iterdir()) == []
        # only the decode ran
        assert mock_run.call_count == 1
