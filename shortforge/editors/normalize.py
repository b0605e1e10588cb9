"""Clip normalizer: frame rate, audio policy and output resolution."""

import logging
import uuid
from pathlib import Path

from shortforge import ffutil
from shortforge.editors.framecrop import FrameCropPipeline
from shortforge.models import ClipDescriptor

logger = logging.getLogger(__name__)

CROP_STRATEGIES = ("filter", "frames")


def scratch_path(work_dir: Path, step: str) -> Path:
    """A fresh, unique file name under *work_dir* for one transform step."""
    return Path(work_dir) / f"{uuid.uuid4().hex}_{step}.mp4"


def normalize_clip(
    clip: ClipDescriptor,
    target_fps: float,
    strip_audio: bool,
    work_dir: Path,
    resolution: tuple[int, int] | None = None,
    strategy: str = "filter",
) -> ClipDescriptor:
    """Bring *clip* to the pipeline's frame rate, audio policy and size.

    Each step writes a new file under *work_dir*; the source is never
    modified. With ``strategy="frames"`` the resolution step goes through
    :class:`FrameCropPipeline` instead of ffmpeg's crop filter. That path
    writes video only, so it is refused when the clip must keep its audio.
    """
    if strategy not in CROP_STRATEGIES:
        raise ValueError(f"unknown crop strategy: {strategy}")
    needs_crop = resolution is not None and (clip.width, clip.height) != resolution
    if strategy == "frames" and needs_crop and clip.has_audio and not strip_audio:
        raise ValueError("the frames crop strategy drops audio; strip the audio to use it")

    current = clip
    if strip_audio and current.has_audio:
        current = ffutil.strip_audio(current, scratch_path(work_dir, "noaudio"))

    if current.fps != target_fps:
        current = ffutil.set_frame_rate(current, target_fps, scratch_path(work_dir, "fps"))

    if needs_crop:
        width, height = resolution
        output = scratch_path(work_dir, "crop")
        if strategy == "frames":
            staging = Path(work_dir) / "frames"
            current = FrameCropPipeline(staging).run(
                current, width, height, output, fps=target_fps
            )
        else:
            current = ffutil.crop_to_resolution(current, width, height, output)

    logger.debug(
        "normalized %s -> %s (%dx%d @ %g fps, audio=%s)",
        clip.path, current.path, current.width, current.height,
        current.fps, current.has_audio,
    )
    return current
