"""Narration: split the script, synthesize each sentence, join the audio."""

import logging
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

from shortforge import ffutil
from shortforge.jobs import CancellationToken, JobCancelled
from shortforge.models import NarrationSegment
from shortforge.services import VoiceSynthesizer

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class SynthesisError(RuntimeError):
    """The voice service returned no audio for a sentence."""


def split_sentences(script: str) -> list[str]:
    """Split on sentence-ending punctuation followed by whitespace."""
    parts = _SENTENCE_END.split(script.strip())
    return [p.strip() for p in parts if p.strip()]


def chunk_text(text: str, limit: int) -> list[str]:
    """Split *text* on word boundaries into pieces of at most *limit* bytes.

    A single word longer than *limit* becomes its own piece.
    """
    chunks: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if len(candidate.encode("utf-8")) <= limit:
            current = candidate
        else:
            if current:
                chunks.append(current)
            current = word
    if current:
        chunks.append(current)
    return chunks


def synthesize_text(
    synth: VoiceSynthesizer, text: str, voice: str, byte_limit: int = 300
) -> bytes:
    """Synthesize *text*, chunking it when it is above the service's limit."""
    if len(text.encode("utf-8")) <= byte_limit:
        pieces = [text]
    else:
        pieces = chunk_text(text, byte_limit)
    audio = b"".join(synth.synthesize(piece, voice) for piece in pieces)
    if not audio:
        raise SynthesisError(f"no audio returned for {text[:40]!r}")
    return audio


def synthesize_narration(
    sentences: Sequence[str],
    synth: VoiceSynthesizer,
    voice: str,
    directory: Path,
    max_workers: int = 4,
    byte_limit: int = 300,
    token: CancellationToken | None = None,
) -> list[NarrationSegment]:
    """Synthesize every sentence concurrently; results keep sentence order.

    A sentence that fails is logged and dropped together with its text, so
    subtitles stay aligned with the audio that exists.
    """
    directory = Path(directory)

    def render(sentence: str) -> NarrationSegment:
        if token is not None:
            token.raise_if_cancelled(f"narration {sentence[:30]!r}")
        path = directory / f"{uuid.uuid4()}.mp3"
        path.write_bytes(synthesize_text(synth, sentence, voice, byte_limit))
        duration = ffutil.probe_audio_duration(path)
        return NarrationSegment(sentence=sentence, path=path, duration=duration)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(render, s) for s in sentences]

    segments: list[NarrationSegment] = []
    for sentence, future in zip(sentences, futures):
        try:
            segments.append(future.result())
        except JobCancelled:
            raise
        except Exception as e:
            logger.error("dropping sentence %r: %s", sentence, e)
    if token is not None:
        token.raise_if_cancelled("narration")
    return segments


def concat_narration(segments: Sequence[NarrationSegment], output_path: Path) -> Path:
    if not segments:
        raise ValueError("no narration segments to join")
    return ffutil.concat_audio([s.path for s in segments], output_path)
