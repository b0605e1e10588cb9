"""Sub-range extraction for a single clip."""

import logging
import uuid
from pathlib import Path

from shortforge import ffutil
from shortforge.models import ClipDescriptor

logger = logging.getLogger(__name__)

TimeValue = float | int | str


def parse_timestamp(value: TimeValue) -> float:
    """Convert seconds or an ``H:M:S`` string to seconds.

    Shorter forms are accepted as well: ``M:S`` and plain ``S``.
    """
    if isinstance(value, (int, float)):
        return float(value)

    parts = value.strip().split(":")
    if not 1 <= len(parts) <= 3:
        raise ValueError(f"invalid timestamp: {value!r}")
    try:
        numbers = [float(p) for p in parts]
    except ValueError:
        raise ValueError(f"invalid timestamp: {value!r}") from None

    while len(numbers) < 3:
        numbers.insert(0, 0.0)
    hours, minutes, seconds = numbers
    return hours * 3600 + minutes * 60 + seconds


def trim_clip(
    clip: ClipDescriptor,
    start: TimeValue,
    end: TimeValue | None = None,
    output_path: Path | None = None,
) -> ClipDescriptor:
    """Extract ``[start, end)`` from *clip* into a new file.

    *end* defaults to the clip's duration; a negative *end* counts back from
    the end of the clip. The range is clamped to the clip. An empty range
    (including any ``end <= start - 1``) returns *clip* itself and writes
    nothing.
    """
    start_sec = max(parse_timestamp(start), 0.0)
    if end is None:
        end_sec = clip.duration
    else:
        end_sec = parse_timestamp(end)
        if end_sec < 0:
            end_sec = clip.duration + end_sec
    end_sec = min(end_sec, clip.duration)

    if end_sec <= start_sec:
        logger.warning(
            "empty trim range [%.3f, %.3f) for %s, keeping clip as is",
            start_sec, end_sec, clip.path,
        )
        return clip

    if output_path is None:
        output_path = clip.path.with_name(f"{clip.path.stem}_trim_{uuid.uuid4().hex[:8]}.mp4")

    return ffutil.cut_range(clip, start_sec, end_sec, output_path)
