"""Shared data types used across ShortForge."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ClipDescriptor:
    """Media attributes of one video file, as reported by a probe."""

    path: Path
    duration: float
    fps: float
    width: int
    height: int
    has_audio: bool
    codec_video: str | None = None


@dataclass(frozen=True)
class NormalizedClip:
    """A source clip and the normalized file derived from it."""

    source: ClipDescriptor
    clip: ClipDescriptor

    @property
    def path(self) -> Path:
        return self.clip.path

    @property
    def duration(self) -> float:
        return self.clip.duration

    @property
    def has_audio(self) -> bool:
        return self.clip.has_audio


@dataclass
class DurationBudget:
    """Running total of selected clip time against a target length."""

    target_total: float
    per_clip_cap: float
    accumulated: float = 0.0

    @property
    def remaining(self) -> float:
        return self.target_total - self.accumulated

    @property
    def met(self) -> bool:
        return self.accumulated >= self.target_total

    def add(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError(f"cannot add a negative duration ({seconds})")
        self.accumulated += seconds


@dataclass(frozen=True)
class SubtitleCue:
    """One subtitle entry. Times are in seconds."""

    index: int
    start: float
    end: float
    text: str

    def __post_init__(self) -> None:
        if self.index < 1:
            raise ValueError(f"cue index must be >= 1, got {self.index}")
        if self.end <= self.start:
            raise ValueError(
                f"cue {self.index} ends at {self.end} before it starts at {self.start}"
            )
        if not self.text.strip():
            raise ValueError(f"cue {self.index} has no text")


@dataclass
class ConcatCommand:
    """An ffmpeg argument vector that concatenates several clips."""

    args: list[str]
    copy_video: bool = False
    audio_inputs: int = 0


@dataclass
class NarrationSegment:
    """A synthesized sentence and the audio file holding it."""

    sentence: str
    path: Path
    duration: float


@dataclass
class CombineResult:
    output: Path
    clips: list[NormalizedClip] = field(default_factory=list)
    budget: DurationBudget | None = None

    @property
    def duration(self) -> float:
        return sum(c.duration for c in self.clips)
