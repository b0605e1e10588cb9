"""Orchestrator that runs one video generation job from subject to final file."""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from shortforge import ffutil
from shortforge.analyzers.transcribe import transcribe
from shortforge.editors.captions import build_cues, write_subtitles
from shortforge.editors.combine import NoUsableClipsError, combine_videos
from shortforge.jobs import CancellationToken, JobRunner
from shortforge.manifest import JobRequest, PipelineConfig
from shortforge.models import NarrationSegment
from shortforge.narration import concat_narration, split_sentences, synthesize_narration
from shortforge.services import Services
from shortforge.sources import (
    DownloadError,
    choose_song,
    clean_dir,
    collect_clip_urls,
    download_clips,
    fetch_songs,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


@dataclass
class EngineResult:
    output_path: Path
    narration_path: Path
    subtitle_path: Path | None = None
    music_path: Path | None = None
    clips_used: int = 0
    duration_narration: float = 0.0


def make_subtitles(
    narration_path: Path,
    segments: list[NarrationSegment],
    config: PipelineConfig,
) -> Path:
    """Time and write the subtitle file for a finished narration track."""
    captions = config.captions
    if captions.mode == "whisper":
        logger.info("creating subtitles with whisper")
        cues = transcribe(narration_path, captions)
    else:
        logger.info("creating subtitles locally")
        cues = build_cues([s.sentence for s in segments], [s.duration for s in segments])

    path = config.subtitles_dir / f"{uuid.uuid4()}.{captions.output_format}"
    return write_subtitles(cues, path, captions.output_format)


def _background_music(request: JobRequest, config: PipelineConfig) -> Path | None:
    if not request.use_music:
        return None
    try:
        if request.zip_url:
            fetch_songs(request.zip_url, config.music_dir)
        return choose_song(config.music_dir)
    except (DownloadError, FileNotFoundError) as e:
        logger.warning("continuing without music: %s", e)
        return None


def generate(
    request: JobRequest,
    services: Services,
    config: PipelineConfig,
    token: CancellationToken,
    on_progress: ProgressCallback | None = None,
) -> EngineResult:
    """Execute the full generation pipeline for *request*.

    Args:
        request: Validated job request.
        services: Script, search and voice collaborators.
        config: Pipeline settings; ``config.output`` receives the video.
        token: Checked at every checkpoint; cancellation raises JobCancelled.
        on_progress: Optional callback(stage_name, fraction_complete).
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    ffutil.check_ffmpeg()

    # Scratch space belongs to this job and is emptied before it starts.
    temp_dir = clean_dir(config.temp_dir)
    clean_dir(config.subtitles_dir)
    clips_dir = temp_dir / "clips"
    downloads_dir = temp_dir / "downloads"
    clips_dir.mkdir()
    downloads_dir.mkdir()

    logger.info("generating video about %r with %s", request.video_subject, request.ai_model)

    # --- Script ---
    token.raise_if_cancelled("script")
    _progress("Writing script", 0.0)
    script = services.writer.generate_script(
        request.video_subject, request.paragraph_number, request.ai_model, request.voice
    )
    terms = services.writer.search_terms(
        request.video_subject, config.stock_clip_count, script, request.ai_model
    )

    # --- Footage ---
    _progress("Searching for stock footage", 0.10)
    urls = collect_clip_urls(
        services.search,
        terms,
        limit=config.search_results,
        min_duration=config.min_clip_duration,
        token=token,
    )
    if not urls:
        raise NoUsableClipsError("stock search returned no clips")

    _progress(f"Downloading {len(urls)} clips", 0.20)
    clip_paths = download_clips(urls, downloads_dir, config.max_workers, token=token)
    if not clip_paths:
        raise NoUsableClipsError("none of the clips could be downloaded")

    # --- Narration ---
    sentences = split_sentences(script)
    if not sentences:
        raise ValueError("generated script contains no sentences")

    _progress("Synthesizing narration", 0.35)
    segments = synthesize_narration(
        sentences,
        services.voice,
        request.voice,
        temp_dir,
        max_workers=config.max_workers,
        byte_limit=config.tts_byte_limit,
        token=token,
    )
    if not segments:
        raise RuntimeError("narration synthesis produced no audio")
    narration_path = concat_narration(segments, temp_dir / f"{uuid.uuid4()}.mp3")
    narration_duration = ffutil.probe_audio_duration(narration_path)

    # --- Subtitles ---
    _progress("Creating subtitles", 0.50)
    subtitle_path: Path | None
    try:
        subtitle_path = make_subtitles(narration_path, segments, config)
    except Exception as e:
        logger.error("continuing without subtitles: %s", e)
        subtitle_path = None

    # --- Assembly ---
    token.raise_if_cancelled("assembly")
    _progress("Combining clips", 0.60)
    combined = combine_videos(
        clip_paths,
        narration_duration,
        config.per_clip_cap,
        clips_dir,
        target_fps=config.target_fps,
        resolution=config.resolution,
        cap_order=config.cap_order,
        crop_strategy=config.crop_strategy,
        token=token,
    )

    token.raise_if_cancelled("final render")
    _progress("Rendering final video", 0.90)
    music_path = _background_music(request, config)
    config.output.parent.mkdir(parents=True, exist_ok=True)
    ffutil.mux_final(
        combined.output,
        narration_path,
        config.output,
        subtitle_path=subtitle_path,
        music_path=music_path,
        music_volume=config.music_volume,
    )

    _progress("Done", 1.0)
    logger.info("video written to %s", config.output)
    return EngineResult(
        output_path=config.output,
        narration_path=narration_path,
        subtitle_path=subtitle_path,
        music_path=music_path,
        clips_used=len(combined.clips),
        duration_narration=narration_duration,
    )


def make_runner(
    services: Services,
    config: PipelineConfig,
    on_progress: ProgressCallback | None = None,
) -> JobRunner:
    """Bind services and config into a runner for JobCoordinator."""

    def run(request: JobRequest, token: CancellationToken) -> Path:
        return generate(request, services, config, token, on_progress).output_path

    return run
