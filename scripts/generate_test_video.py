#!/usr/bin/env python3
"""Generate synthetic stock clips for ShortForge pipeline testing.

The clips deliberately disagree on everything the pipeline normalizes:

  clip_a.mp4  4s  1280x720  @ 25 fps  blue,   440 Hz tone
  clip_b.mp4  6s  640x360   @ 30 fps  red,    no audio
  clip_c.mp4  5s  1080x1920 @ 24 fps  green,  660 Hz tone

plus narration_0.mp3 / narration_1.mp3 (1.2s and 0.8s tones) and a matching
script.txt, for the ``subtitles`` command.
"""

import subprocess
import sys
from pathlib import Path

CLIPS = [
    ("clip_a.mp4", "blue", "1280x720", 25, 4, 440),
    ("clip_b.mp4", "red", "640x360", 30, 6, None),
    ("clip_c.mp4", "green", "1080x1920", 24, 5, 660),
]

NARRATION = [("narration_0.mp3", 1.2, 330), ("narration_1.mp3", 0.8, 550)]


def generate_clip(
    output: Path, color: str, size: str, fps: int, duration: float, tone: int | None
) -> None:
    cmd = [
        "ffmpeg", "-y",
        "-f", "lavfi", "-i", f"color=c={color}:s={size}:d={duration}:r={fps}",
    ]
    if tone is not None:
        cmd += ["-f", "lavfi", "-i", f"sine=f={tone}:d={duration}", "-c:a", "aac"]
    cmd += ["-c:v", "libx264", "-pix_fmt", "yuv420p", "-shortest", str(output)]
    subprocess.run(cmd, check=True, capture_output=True)


def generate_tone(output: Path, duration: float, tone: int) -> None:
    cmd = [
        "ffmpeg", "-y",
        "-f", "lavfi", "-i", f"sine=f={tone}:d={duration}",
        str(output),
    ]
    subprocess.run(cmd, check=True, capture_output=True)


def generate_fixtures(out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, color, size, fps, duration, tone in CLIPS:
        generate_clip(out_dir / name, color, size, fps, duration, tone)
        print(f"Generated: {out_dir / name}")
    for name, duration, tone in NARRATION:
        generate_tone(out_dir / name, duration, tone)
        print(f"Generated: {out_dir / name}")
    (out_dir / "script.txt").write_text("Hello. World.\n", encoding="utf-8")


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/clips")
    generate_fixtures(out)
