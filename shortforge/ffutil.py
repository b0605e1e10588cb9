"""FFmpeg/ffprobe subprocess helpers.

Every call passes an argument vector to ``subprocess.run``; nothing goes
through a shell. Paths are checked by ``_arg_path`` before they are placed
on a command line.
"""

import dataclasses
import json
import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

from shortforge.models import ClipDescriptor, ConcatCommand

logger = logging.getLogger(__name__)

VIDEO_CODEC = ["-c:v", "libx264", "-preset", "veryfast", "-pix_fmt", "yuv420p"]
AUDIO_CODEC = ["-c:a", "aac"]


class FFmpegNotFoundError(RuntimeError):
    pass


class ProbeError(ValueError):
    """Raised when a media file cannot be described."""


class UnreadableMediaError(ProbeError):
    """The inspection report contains no decodable video stream."""


class MissingFieldError(ProbeError):
    """A required field is absent from the inspection report."""

    def __init__(self, field: str, path: Path | str) -> None:
        super().__init__(f"{field} not found in report for {path}")
        self.field = field


class TranscodeError(RuntimeError):
    """ffmpeg exited non-zero. ``stderr`` holds its output verbatim."""

    def __init__(self, cmd: Sequence[str], returncode: int, stderr: str) -> None:
        tail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(f"{cmd[0]} failed (rc={returncode}): {tail}")
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def _arg_path(path: Path | str) -> str:
    """Return *path* as a command-line argument, rejecting option-like values."""
    text = str(path)
    if not text:
        raise ValueError("empty media path")
    if text.startswith("-"):
        raise ValueError(f"media path may not start with '-': {text!r}")
    if any(c in text for c in ("\x00", "\n", "\r")):
        raise ValueError(f"media path contains control characters: {text!r}")
    return text


def _seconds(value: float) -> str:
    return f"{value:.3f}"


def _run(cmd: list[str]) -> subprocess.CompletedProcess:
    logger.debug("running %s", " ".join(cmd))
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise TranscodeError(cmd, result.returncode, result.stderr or "")
    return result


# ---------------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------------

_DURATION_RE = re.compile(r"Duration: (\d+):(\d+):(\d+(?:\.\d+)?)")
_STREAM_RE = re.compile(r"Stream #\d+:\d+.*?: (Video|Audio): (.*)")
_RESOLUTION_RE = re.compile(r"\b(\d{2,5})x(\d{2,5})\b")
_FPS_RE = re.compile(r"(\d+(?:\.\d+)?) fps")


def parse_probe_report(report: str, path: Path | str) -> ClipDescriptor:
    """Parse the stream summary ffmpeg prints for ``-i <file>``."""
    video_line = None
    has_audio = False
    for line in report.splitlines():
        m = _STREAM_RE.search(line)
        if not m:
            continue
        if m.group(1) == "Video" and video_line is None:
            video_line = m.group(2)
        elif m.group(1) == "Audio":
            has_audio = True

    if video_line is None:
        raise UnreadableMediaError(f"No decodable video stream in {path}")

    m = _DURATION_RE.search(report)
    if not m:
        raise MissingFieldError("duration", path)
    duration = int(m.group(1)) * 3600 + int(m.group(2)) * 60 + float(m.group(3))

    m = _FPS_RE.search(video_line)
    if not m:
        raise MissingFieldError("fps", path)
    fps = float(m.group(1))

    m = _RESOLUTION_RE.search(video_line)
    if not m:
        raise MissingFieldError("resolution", path)

    codec = video_line.split(",", 1)[0].split(" ", 1)[0].strip() or None

    return ClipDescriptor(
        path=Path(path),
        duration=duration,
        fps=fps,
        width=int(m.group(1)),
        height=int(m.group(2)),
        has_audio=has_audio,
        codec_video=codec,
    )


def probe(input_path: Path) -> ClipDescriptor:
    """Describe a video file from ffmpeg's inspection report."""
    cmd = ["ffmpeg", "-hide_banner", "-i", _arg_path(input_path)]
    # Without an output file ffmpeg always exits 1; the report is on stderr.
    result = subprocess.run(cmd, capture_output=True, text=True)
    return parse_probe_report(result.stderr or "", input_path)


def has_audio_stream(input_path: Path) -> bool:
    return probe(input_path).has_audio


def probe_audio_duration(input_path: Path) -> float:
    """Duration in seconds of an audio file, via ffprobe's JSON report."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        _arg_path(input_path),
    ]
    result = _run(cmd)
    data = json.loads(result.stdout)

    audio_stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "audio"), None
    )
    if audio_stream is None:
        raise UnreadableMediaError(f"No audio stream found in {input_path}")

    duration = audio_stream.get("duration") or data.get("format", {}).get("duration")
    if duration is None:
        raise MissingFieldError("duration", input_path)
    return float(duration)


# ---------------------------------------------------------------------------
# Single-clip transforms
# ---------------------------------------------------------------------------

def strip_audio(clip: ClipDescriptor, output_path: Path) -> ClipDescriptor:
    """Copy the video stream and drop every audio stream."""
    cmd = [
        "ffmpeg", "-y",
        "-i", _arg_path(clip.path),
        "-c:v", "copy",
        "-an",
        _arg_path(output_path),
    ]
    _run(cmd)
    return dataclasses.replace(clip, path=Path(output_path), has_audio=False)


def set_frame_rate(clip: ClipDescriptor, fps: float, output_path: Path) -> ClipDescriptor:
    """Re-encode to a constant frame rate, keeping any audio as-is."""
    cmd = [
        "ffmpeg", "-y",
        "-i", _arg_path(clip.path),
        "-vf", f"fps={fps:g}",
        *VIDEO_CODEC,
        "-c:a", "copy",
        _arg_path(output_path),
    ]
    _run(cmd)
    return dataclasses.replace(
        clip, path=Path(output_path), fps=float(fps), codec_video="h264"
    )


def crop_to_resolution(
    clip: ClipDescriptor, width: int, height: int, output_path: Path
) -> ClipDescriptor:
    """Scale to cover width x height, then centre-crop to exactly that size."""
    vf = (
        f"scale={width}:{height}:force_original_aspect_ratio=increase,"
        f"crop={width}:{height},setsar=1"
    )
    cmd = [
        "ffmpeg", "-y",
        "-i", _arg_path(clip.path),
        "-vf", vf,
        *VIDEO_CODEC,
        "-c:a", "copy",
        _arg_path(output_path),
    ]
    _run(cmd)
    return dataclasses.replace(
        clip, path=Path(output_path), width=width, height=height, codec_video="h264"
    )


def cut_range(
    clip: ClipDescriptor, start: float, end: float, output_path: Path
) -> ClipDescriptor:
    """Write the ``[start, end)`` range of *clip* to *output_path*.

    Seeking happens on the output side so the cut is frame accurate; the video
    is re-encoded and audio, when present, goes to AAC.
    """
    cmd = [
        "ffmpeg", "-y",
        "-i", _arg_path(clip.path),
        "-ss", _seconds(start),
        "-to", _seconds(end),
        *VIDEO_CODEC,
    ]
    cmd += AUDIO_CODEC if clip.has_audio else ["-an"]
    cmd.append(_arg_path(output_path))
    _run(cmd)
    return dataclasses.replace(
        clip, path=Path(output_path), duration=end - start, codec_video="h264"
    )


def extract_frames(input_path: Path, pattern: Path) -> None:
    """Decode every frame to numbered stills, without drops or duplicates."""
    cmd = [
        "ffmpeg", "-y",
        "-i", _arg_path(input_path),
        "-vsync", "0",
        "-f", "image2",
        _arg_path(pattern),
    ]
    _run(cmd)


def encode_frames(pattern: Path, fps: float, output_path: Path) -> None:
    """Encode a numbered still sequence back into an H.264 video."""
    cmd = [
        "ffmpeg", "-y",
        "-framerate", f"{fps:g}",
        "-i", _arg_path(pattern),
        *VIDEO_CODEC,
        _arg_path(output_path),
    ]
    _run(cmd)


# ---------------------------------------------------------------------------
# Multi-clip assembly
# ---------------------------------------------------------------------------

def _can_stream_copy(clips: Sequence[ClipDescriptor]) -> bool:
    first = clips[0]
    if first.codec_video is None:
        return False
    return all(
        c.codec_video == first.codec_video
        and (c.width, c.height) == (first.width, first.height)
        and c.fps == first.fps
        and c.has_audio == first.has_audio
        for c in clips
    )


def _concat_list_entry(path: Path) -> str:
    escaped = str(Path(path).resolve()).replace("'", r"'\''")
    return f"file '{escaped}'"


def build_concat_command(
    clips: Sequence[ClipDescriptor],
    output_path: Path,
    list_path: Path | None = None,
) -> ConcatCommand:
    """Build the ffmpeg command that joins *clips* in order.

    Matching clips are joined with the concat demuxer and stream copy when a
    *list_path* is given. Anything else goes through a filter graph: every
    clip contributes its video stream, and only clips that carry audio
    contribute an audio stream. With no audio at all the audio output is not
    mapped.
    """
    if not clips:
        raise ValueError("build_concat_command called with empty clip list")

    if list_path is not None and _can_stream_copy(clips):
        lines = [_concat_list_entry(c.path) for c in clips]
        Path(list_path).write_text("\n".join(lines) + "\n", encoding="utf-8")
        args = [
            "ffmpeg", "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", _arg_path(list_path),
            "-c", "copy",
            _arg_path(output_path),
        ]
        return ConcatCommand(
            args=args,
            copy_video=True,
            audio_inputs=len(clips) if clips[0].has_audio else 0,
        )

    inputs: list[str] = []
    video_labels: list[str] = []
    audio_labels: list[str] = []
    for i, clip in enumerate(clips):
        inputs += ["-i", _arg_path(clip.path)]
        video_labels.append(f"[{i}:v:0]")
        if clip.has_audio:
            audio_labels.append(f"[{i}:a:0]")

    filter_parts = [f"{''.join(video_labels)}concat=n={len(clips)}:v=1:a=0[outv]"]
    maps = ["-map", "[outv]"]
    if audio_labels:
        filter_parts.append(
            f"{''.join(audio_labels)}concat=n={len(audio_labels)}:v=0:a=1[outa]"
        )
        maps += ["-map", "[outa]"]

    args = [
        "ffmpeg", "-y",
        *inputs,
        "-filter_complex", ";".join(filter_parts),
        *maps,
        *VIDEO_CODEC,
    ]
    if audio_labels:
        args += AUDIO_CODEC
    args.append(_arg_path(output_path))
    return ConcatCommand(args=args, copy_video=False, audio_inputs=len(audio_labels))


def concat_clips(
    clips: Sequence[ClipDescriptor],
    output_path: Path,
    list_path: Path | None = None,
) -> Path:
    """Concatenate *clips* into *output_path*. Raises TranscodeError on failure."""
    command = build_concat_command(clips, output_path, list_path=list_path)
    logger.info(
        "concatenating %d clips into %s (%s)",
        len(clips), output_path, "stream copy" if command.copy_video else "re-encode",
    )
    _run(command.args)
    return Path(output_path)


def concat_audio(input_paths: Sequence[Path], output_path: Path) -> Path:
    """Join audio files end to end, in the given order."""
    if not input_paths:
        raise ValueError("concat_audio called with empty input list")

    cmd = ["ffmpeg", "-y"]
    for p in input_paths:
        cmd += ["-i", _arg_path(p)]
    labels = "".join(f"[{i}:a:0]" for i in range(len(input_paths)))
    cmd += [
        "-filter_complex", f"{labels}concat=n={len(input_paths)}:v=0:a=1[a]",
        "-map", "[a]",
        _arg_path(output_path),
    ]
    _run(cmd)
    return Path(output_path)


def _subtitles_filter(subtitle_path: Path) -> str:
    escaped = (
        str(subtitle_path)
        .replace("\\", "\\\\")
        .replace(":", "\\:")
        .replace("'", "\\'")
    )
    return f"subtitles={escaped}"


def mux_final(
    video_path: Path,
    narration_path: Path,
    output_path: Path,
    subtitle_path: Path | None = None,
    music_path: Path | None = None,
    music_volume: float = 0.1,
) -> Path:
    """Lay the narration (and optional music bed) under the video.

    Subtitles, when given, are burned into the picture. The output ends with
    the shorter of the video and the narration.
    """
    cmd = [
        "ffmpeg", "-y",
        "-i", _arg_path(video_path),
        "-i", _arg_path(narration_path),
    ]
    if music_path is not None:
        cmd += ["-stream_loop", "-1", "-i", _arg_path(music_path)]

    filters: list[str] = []
    video_out = "0:v:0"
    if subtitle_path is not None:
        filters.append(f"[0:v:0]{_subtitles_filter(subtitle_path)}[v]")
        video_out = "[v]"

    audio_out = "1:a:0"
    if music_path is not None:
        filters.append(f"[2:a:0]volume={music_volume:g}[bg]")
        filters.append("[1:a:0][bg]amix=inputs=2:duration=first[a]")
        audio_out = "[a]"

    if filters:
        cmd += ["-filter_complex", ";".join(filters)]
    cmd += [
        "-map", video_out,
        "-map", audio_out,
        *VIDEO_CODEC,
        *AUDIO_CODEC,
        "-shortest",
        _arg_path(output_path),
    ]
    _run(cmd)
    return Path(output_path)
