"""Duration-budgeted clip selection and concatenation.

Source clips are cycled in order until the selected footage covers the
target duration. Each selection is trimmed against two limits (the budget
still remaining and an even share of the target per source), normalized, and
capped at a hard per-clip maximum.
"""

import logging
import uuid
from pathlib import Path
from typing import Sequence

from shortforge import ffutil
from shortforge.editors.framecrop import FrameCropError
from shortforge.editors.normalize import normalize_clip, scratch_path
from shortforge.editors.trim import trim_clip
from shortforge.jobs import CancellationToken
from shortforge.manifest import ConfigurationError
from shortforge.models import ClipDescriptor, CombineResult, DurationBudget, NormalizedClip

logger = logging.getLogger(__name__)

CAP_ORDERS = ("remaining_first", "per_clip_first")

# Failures that cost one clip, not the job.
CLIP_ERRORS = (ffutil.ProbeError, ffutil.TranscodeError, FrameCropError)


class NoUsableClipsError(RuntimeError):
    """Every source clip failed or was empty."""


def _validate(count: int, target_total: float, per_clip_cap: float, cap_order: str) -> None:
    if count == 0:
        raise ConfigurationError("no source clips to combine")
    if target_total <= 0:
        raise ConfigurationError(f"target duration must be positive, got {target_total}")
    if per_clip_cap <= 0:
        raise ConfigurationError(f"per-clip cap must be positive, got {per_clip_cap}")
    if cap_order not in CAP_ORDERS:
        raise ConfigurationError(f"unknown cap order: {cap_order}")


def budget_cut(
    duration: float, remaining: float, per_clip: float, cap_order: str = "remaining_first"
) -> float | None:
    """Length to trim a clip to before normalizing, or None to keep it whole."""
    limits = (remaining, per_clip) if cap_order == "remaining_first" else (per_clip, remaining)
    for limit in limits:
        if limit < duration:
            return limit
    return None


def plan_durations(
    durations: Sequence[float],
    target_total: float,
    per_clip_cap: float,
    cap_order: str = "remaining_first",
) -> list[tuple[int, float]]:
    """Selection arithmetic without any media work.

    Returns ``(source_index, seconds)`` pairs in selection order. Sources with
    a non-positive duration are skipped.
    """
    _validate(len(durations), target_total, per_clip_cap, cap_order)
    usable = [i for i, d in enumerate(durations) if d > 0]
    if not usable:
        raise NoUsableClipsError("all source clips are empty")

    per_clip = target_total / len(durations)
    budget = DurationBudget(target_total=target_total, per_clip_cap=per_clip_cap)
    plan: list[tuple[int, float]] = []

    while not budget.met:
        for i in usable:
            length = durations[i]
            cut = budget_cut(length, budget.remaining, per_clip, cap_order)
            if cut is not None:
                length = cut
            length = min(length, per_clip_cap)
            plan.append((i, length))
            budget.add(length)
            if budget.met:
                break
    return plan


def _prepare(path: Path, work_dir: Path) -> tuple[ClipDescriptor, ClipDescriptor]:
    """Probe a source and drop its audio. Returns (source, silent copy)."""
    source = ffutil.probe(path)
    if source.duration <= 0:
        raise ffutil.ProbeError(f"{path} has no duration")
    silent = source
    if source.has_audio:
        silent = ffutil.strip_audio(source, scratch_path(work_dir, "noaudio"))
    return source, silent


def combine_videos(
    clip_paths: Sequence[Path],
    target_total: float,
    per_clip_cap: float,
    work_dir: Path,
    *,
    target_fps: float = 30,
    resolution: tuple[int, int] = (1920, 1080),
    cap_order: str = "remaining_first",
    crop_strategy: str = "filter",
    token: CancellationToken | None = None,
) -> CombineResult:
    """Select, normalize and concatenate clips until *target_total* is covered.

    Args:
        clip_paths: Source clips, cycled in this order.
        target_total: Length the combined video must reach, in seconds.
        per_clip_cap: Hard ceiling for any single selected clip.
        work_dir: Scratch directory for intermediate and output files.
        cap_order: Which trim limit wins when both apply (see ``budget_cut``).
        crop_strategy: ``"filter"`` or ``"frames"``, see ``normalize_clip``.
        token: Checked before each clip is processed.

    A clip that cannot be probed or transcoded is logged and dropped from all
    later passes. Concatenation errors propagate.
    """
    _validate(len(clip_paths), target_total, per_clip_cap, cap_order)
    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    per_clip = target_total / len(clip_paths)
    budget = DurationBudget(target_total=target_total, per_clip_cap=per_clip_cap)
    logger.info(
        "combining %d clips into %.2fs, each clip at most %.2fs",
        len(clip_paths), target_total, min(per_clip, per_clip_cap),
    )

    active = [Path(p) for p in clip_paths]
    prepared: dict[Path, tuple[ClipDescriptor, ClipDescriptor]] = {}
    selected: list[NormalizedClip] = []

    while not budget.met:
        if not active:
            raise NoUsableClipsError("every source clip failed; nothing to combine")

        for path in list(active):
            if token is not None:
                token.raise_if_cancelled(f"clip {path.name}")
            try:
                if path not in prepared:
                    prepared[path] = _prepare(path, work_dir)
                source, clip = prepared[path]

                cut = budget_cut(clip.duration, budget.remaining, per_clip, cap_order)
                if cut is not None:
                    clip = trim_clip(clip, 0, cut, scratch_path(work_dir, "trim"))

                clip = normalize_clip(
                    clip,
                    target_fps,
                    strip_audio=True,
                    work_dir=work_dir,
                    resolution=resolution,
                    strategy=crop_strategy,
                )

                if clip.duration > per_clip_cap:
                    clip = trim_clip(clip, 0, per_clip_cap, scratch_path(work_dir, "cap"))
            except CLIP_ERRORS as e:
                logger.warning("excluding clip %s: %s", path, e)
                active.remove(path)
                continue

            selected.append(NormalizedClip(source=source, clip=clip))
            budget.add(clip.duration)
            logger.debug(
                "selected %s for %.2fs (%.2f/%.2fs)",
                path.name, clip.duration, budget.accumulated, target_total,
            )
            if budget.met:
                break

    if token is not None:
        token.raise_if_cancelled("concatenation")

    job_id = uuid.uuid4().hex
    output = work_dir / f"{job_id}.mp4"
    ffutil.concat_clips(
        [c.clip for c in selected], output, list_path=work_dir / f"{job_id}_concat.txt"
    )
    logger.info("combined %d clips (%.2fs) into %s", len(selected), budget.accumulated, output)
    return CombineResult(output=output, clips=selected, budget=budget)
