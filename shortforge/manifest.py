"""Job request and pipeline configuration, the contract between CLI/API and engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_ZIP_URL = "https://filebin.net/2avx134kdibc4c3q/drive-download-20240209T180019Z-001.zip"


class ConfigurationError(ValueError):
    """The job cannot start with the given inputs."""


@dataclass
class JobRequest:
    """One video generation request."""

    video_subject: str
    paragraph_number: int = 1
    ai_model: str = "gpt3.5-turbo"
    use_music: bool = False
    zip_url: str | None = DEFAULT_ZIP_URL
    voice: str = "en_us_001"

    # request key -> field name
    _ALIASES = {
        "videoSubject": "video_subject",
        "paragraphNumber": "paragraph_number",
        "aiModel": "ai_model",
        "useMusic": "use_music",
        "zipUrl": "zip_url",
    }

    @classmethod
    def from_dict(cls, data: dict) -> "JobRequest":
        """Build a request from JSON keys (camelCase or snake_case)."""
        if not isinstance(data, dict):
            raise ConfigurationError("request must be a JSON object")
        fields = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name in cls.__dataclass_fields__:
                fields[name] = value
        if not fields.get("video_subject"):
            raise ConfigurationError("request must contain 'videoSubject'")

        request = cls(**fields)
        try:
            request.paragraph_number = int(request.paragraph_number)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"paragraphNumber must be an integer, got {request.paragraph_number!r}"
            ) from e
        if not isinstance(request.use_music, bool):
            raise ConfigurationError(f"useMusic must be true or false, got {request.use_music!r}")
        return request

    def validate(self) -> None:
        if not isinstance(self.video_subject, str):
            raise ConfigurationError("video subject must be a string")
        if not self.video_subject.strip():
            raise ConfigurationError("video subject must not be empty")
        if self.paragraph_number < 1:
            raise ConfigurationError("paragraph number must be at least 1")
        if not self.voice or not isinstance(self.voice, str):
            raise ConfigurationError("a voice must be specified")


@dataclass
class CaptionConfig:
    """Where subtitle timing comes from and how it is written."""

    mode: str = "local"  # "local" (narration durations) or "whisper"
    model: str = "base"
    language: str | None = None
    output_format: str = "srt"


@dataclass
class PipelineConfig:
    """Settings shared by every job."""

    work_dir: Path = Path("work")
    output: Path = Path("output.mp4")
    target_fps: float = 30
    width: int = 1920
    height: int = 1080
    per_clip_cap: float = 5.0
    stock_clip_count: int = 5
    search_results: int = 15
    min_clip_duration: int = 10
    max_workers: int = 4
    tts_byte_limit: int = 300
    cap_order: str = "remaining_first"
    crop_strategy: str = "filter"
    music_volume: float = 0.1
    captions: CaptionConfig = field(default_factory=CaptionConfig)

    @property
    def temp_dir(self) -> Path:
        return self.work_dir / "temp"

    @property
    def subtitles_dir(self) -> Path:
        return self.work_dir / "subtitles"

    @property
    def music_dir(self) -> Path:
        return self.work_dir / "songs"

    @property
    def resolution(self) -> tuple[int, int]:
        return (self.width, self.height)

    def validate(self) -> None:
        if self.target_fps <= 0:
            raise ConfigurationError("target_fps must be positive")
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError("resolution must be positive")
        if self.per_clip_cap <= 0:
            raise ConfigurationError("per_clip_cap must be positive")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        if self.cap_order not in ("remaining_first", "per_clip_first"):
            raise ConfigurationError(f"unknown cap_order: {self.cap_order}")
        if self.crop_strategy not in ("filter", "frames"):
            raise ConfigurationError(f"unknown crop_strategy: {self.crop_strategy}")
        if self.captions.mode not in ("local", "whisper"):
            raise ConfigurationError(f"unknown caption mode: {self.captions.mode}")
        if self.captions.output_format not in ("srt", "vtt"):
            raise ConfigurationError(
                f"unknown caption format: {self.captions.output_format}"
            )


def load_config(path: str | Path) -> PipelineConfig:
    """Load and validate a pipeline configuration from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if not isinstance(data, dict):
        raise ConfigurationError("config must be a JSON object")

    captions = CaptionConfig(**data.pop("captions")) if "captions" in data else CaptionConfig()
    for key in ("work_dir", "output"):
        if key in data:
            data[key] = Path(data[key])

    try:
        config = PipelineConfig(captions=captions, **data)
    except TypeError as e:
        raise ConfigurationError(f"invalid config: {e}") from e
    config.validate()
    return config
