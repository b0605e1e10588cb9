"""Crop a clip by decoding it to stills, cropping each still and re-encoding.

This is the slow fallback for sources the ``crop`` filter handles badly. Each
step is a separate method so a caller can retry one without redoing the rest.
"""

import dataclasses
import logging
from pathlib import Path

from PIL import Image

from shortforge import ffutil
from shortforge.models import ClipDescriptor
from shortforge.sources import clean_dir

logger = logging.getLogger(__name__)

FRAME_PREFIX = "frame-"
FRAME_DIGITS = 5


class FrameCropError(RuntimeError):
    """A decoded frame could not be cropped."""


class FrameCropPipeline:
    def __init__(self, staging_dir: Path, frame_format: str = "png") -> None:
        if frame_format not in ("png", "jpg", "bmp"):
            raise ValueError(f"unsupported frame format: {frame_format}")
        self.staging_dir = Path(staging_dir)
        self.frame_format = frame_format

    @property
    def pattern(self) -> Path:
        return self.staging_dir / f"{FRAME_PREFIX}%0{FRAME_DIGITS}d.{self.frame_format}"

    def frames(self) -> list[Path]:
        """Staged frames in playback order."""
        return sorted(self.staging_dir.glob(f"{FRAME_PREFIX}*.{self.frame_format}"))

    def clean(self) -> None:
        clean_dir(self.staging_dir)

    def decode(self, clip: ClipDescriptor) -> int:
        ffutil.extract_frames(clip.path, self.pattern)
        count = len(self.frames())
        logger.info("decoded %d frames from %s", count, clip.path)
        return count

    def crop_frames(self, width: int, height: int) -> int:
        """Crop every staged frame in place to ``(0, 0, width, height)``."""
        frames = self.frames()
        for frame in frames:
            try:
                with Image.open(frame) as image:
                    cropped = image.crop((0, 0, width, height))
                cropped.save(frame)
            except OSError as e:
                raise FrameCropError(f"could not crop {frame.name}: {e}") from e
        return len(frames)

    def encode(self, fps: float, output_path: Path) -> None:
        ffutil.encode_frames(self.pattern, fps, output_path)

    def run(
        self,
        clip: ClipDescriptor,
        width: int,
        height: int,
        output_path: Path,
        fps: float = 30,
    ) -> ClipDescriptor:
        """Decode, crop and re-encode. The staging area is left empty either way."""
        self.clean()
        try:
            self.decode(clip)
            self.crop_frames(width, height)
            self.encode(fps, output_path)
        finally:
            self.clean()

        return dataclasses.replace(
            clip,
            path=Path(output_path),
            width=width,
            height=height,
            fps=float(fps),
            has_audio=False,
            codec_video="h264",
        )
