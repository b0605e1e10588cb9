"""Speech-to-text subtitle timing using OpenAI Whisper."""

import logging
from pathlib import Path

from shortforge.manifest import CaptionConfig
from shortforge.models import SubtitleCue

logger = logging.getLogger(__name__)


def transcribe(audio_path: Path, config: CaptionConfig) -> list[SubtitleCue]:
    """Run Whisper over the narration and return timed cues."""
    import whisper

    model = whisper.load_model(config.model)
    result = model.transcribe(str(audio_path), language=config.language)

    cues: list[SubtitleCue] = []
    for seg in result["segments"]:
        text = seg["text"].strip()
        if not text or seg["end"] <= seg["start"]:
            continue
        cues.append(
            SubtitleCue(index=len(cues) + 1, start=seg["start"], end=seg["end"], text=text)
        )
    logger.info("whisper produced %d cues for %s", len(cues), audio_path)
    return cues
