"""Caption editor: times subtitle cues and writes subtitle files."""

import logging
from pathlib import Path
from typing import Sequence

from shortforge.models import SubtitleCue

logger = logging.getLogger(__name__)

ZERO_SRT_TIME = "0:00:00,0"


def build_cues(sentences: Sequence[str], durations: Sequence[float]) -> list[SubtitleCue]:
    """Give each sentence the time span of its narration clip.

    Cues are back to back: each one starts where the previous one ended,
    and the first starts at zero.
    """
    if len(sentences) != len(durations):
        raise ValueError(
            f"{len(sentences)} sentences but {len(durations)} audio durations"
        )

    cues: list[SubtitleCue] = []
    start = 0.0
    for i, (sentence, duration) in enumerate(zip(sentences, durations), 1):
        end = start + duration
        cues.append(SubtitleCue(index=i, start=start, end=end, text=sentence.strip()))
        start = end
    return cues


def _split_ms(seconds: float) -> tuple[int, int, int, int]:
    total_ms = round(seconds * 1000)
    h, rest = divmod(total_ms, 3_600_000)
    m, rest = divmod(rest, 60_000)
    s, ms = divmod(rest, 1000)
    return h, m, s, ms


def format_srt_time(seconds: float) -> str:
    if seconds == 0:
        return ZERO_SRT_TIME
    h, m, s, ms = _split_ms(seconds)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def format_vtt_time(seconds: float) -> str:
    h, m, s, ms = _split_ms(seconds)
    return f"{h:02d}:{m:02d}:{s:02d}.{ms:03d}"


def render_srt(cues: Sequence[SubtitleCue]) -> str:
    blocks = [
        f"{cue.index}\n{format_srt_time(cue.start)} --> {format_srt_time(cue.end)}\n{cue.text}\n"
        for cue in cues
    ]
    return "\n".join(blocks)


def render_vtt(cues: Sequence[SubtitleCue]) -> str:
    lines: list[str] = ["WEBVTT", ""]
    for cue in cues:
        lines.append(f"{format_vtt_time(cue.start)} --> {format_vtt_time(cue.end)}")
        lines.append(cue.text)
        lines.append("")
    return "\n".join(lines)


def write_subtitles(
    cues: Sequence[SubtitleCue], path: Path, output_format: str = "srt"
) -> Path:
    """Write cues to *path*, replacing any existing file."""
    if output_format == "vtt":
        text = render_vtt(cues)
    elif output_format == "srt":
        text = render_srt(cues)
    else:
        raise ValueError(f"unknown subtitle format: {output_format}")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info("wrote %d cues to %s", len(cues), path)
    return path
