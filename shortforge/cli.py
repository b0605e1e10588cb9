"""Thin CLI entry point for the assembly stages and the API server."""

import argparse
import importlib
import logging
import shutil
import sys
from pathlib import Path

from shortforge import ffutil
from shortforge.editors.captions import build_cues, write_subtitles
from shortforge.editors.combine import CAP_ORDERS, combine_videos
from shortforge.editors.framecrop import FrameCropPipeline
from shortforge.manifest import PipelineConfig, load_config
from shortforge.narration import split_sentences
from shortforge.services import Services


def _combine(args: argparse.Namespace) -> None:
    config = load_config(args.config) if args.config else PipelineConfig()
    result = combine_videos(
        args.clips,
        args.duration,
        args.clip_cap if args.clip_cap is not None else config.per_clip_cap,
        args.work_dir,
        target_fps=config.target_fps,
        resolution=config.resolution,
        cap_order=args.cap_order or config.cap_order,
        crop_strategy=config.crop_strategy,
    )
    if args.output:
        shutil.move(result.output, args.output)
    print(f"Done! Output: {args.output or result.output}")
    print(f"  Clips used: {len(result.clips)}  Duration: {result.duration:.1f}s")


def _subtitles(args: argparse.Namespace) -> None:
    sentences = split_sentences(args.script.read_text(encoding="utf-8"))
    durations = [ffutil.probe_audio_duration(p) for p in args.audio]
    cues = build_cues(sentences, durations)
    path = write_subtitles(cues, args.output, args.format)
    print(f"Wrote {len(cues)} cues to {path}")


def _crop(args: argparse.Namespace) -> None:
    clip = ffutil.probe(args.video)
    pipeline = FrameCropPipeline(args.staging or args.output.parent / "frames", args.frame_format)
    result = pipeline.run(clip, args.width, args.height, args.output, fps=args.fps)
    print(f"Cropped {clip.width}x{clip.height} -> {result.width}x{result.height}: {result.path}")


def load_services(target: str) -> Services:
    """Build the collaborators named by ``"package.module:factory"``.

    *factory* is called with no arguments and must return a Services bundle.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"services must look like 'module:factory', got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"cannot import {module_name}: {e}") from e
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ValueError(f"{target} is not a callable")
    services = factory()
    if not isinstance(services, Services):
        raise ValueError(f"{target} returned {type(services).__name__}, not Services")
    return services


def _serve(args: argparse.Namespace) -> None:
    from shortforge.web import create_app

    config = load_config(args.config) if args.config else PipelineConfig()
    app = create_app(services=load_services(args.services), config=config)
    print(f"ShortForge API: http://{args.host}:{args.port}/api")
    app.run(host=args.host, port=args.port, debug=False)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="shortforge",
        description="ShortForge: assemble short videos from stock clips, narration and subtitles.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    comb = sub.add_parser("combine", help="Combine clips to fill a target duration")
    comb.add_argument("clips", nargs="+", type=Path, help="Source clips, used in order")
    comb.add_argument("--duration", "-d", type=float, required=True, help="Target duration (seconds)")
    comb.add_argument("--clip-cap", type=float, default=None, help="Maximum seconds per clip")
    comb.add_argument("--cap-order", choices=CAP_ORDERS, default=None, help="Which trim limit applies first")
    comb.add_argument("--work-dir", type=Path, default=Path("work/clips"), help="Scratch directory")
    comb.add_argument("--config", "-c", type=Path, help="Path to a JSON pipeline config")
    comb.add_argument("--output", "-o", type=Path, help="Output file path")

    subs = sub.add_parser("subtitles", help="Time subtitles from per-sentence narration files")
    subs.add_argument("audio", nargs="+", type=Path, help="Narration clip per sentence, in order")
    subs.add_argument("--script", type=Path, required=True, help="Text file with the narrated script")
    subs.add_argument("--output", "-o", type=Path, default=Path("subtitles.srt"), help="Subtitle file")
    subs.add_argument("--format", choices=["srt", "vtt"], default="srt", help="Subtitle format")

    crop = sub.add_parser("crop", help="Crop a clip frame by frame")
    crop.add_argument("video", type=Path, help="Input video file")
    crop.add_argument("output", type=Path, help="Output video file")
    crop.add_argument("--width", type=int, default=1920)
    crop.add_argument("--height", type=int, default=1080)
    crop.add_argument("--fps", type=float, default=30)
    crop.add_argument("--frame-format", choices=["png", "jpg", "bmp"], default="png")
    crop.add_argument("--staging", type=Path, help="Directory for decoded frames")

    serve = sub.add_parser("serve", help="Launch the HTTP API")
    serve.add_argument("--port", type=int, default=3000, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    serve.add_argument(
        "--services", required=True,
        help="Factory returning the script, search and voice services (module:function)",
    )
    serve.add_argument("--config", "-c", type=Path, help="Path to a JSON pipeline config")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handlers = {"combine": _combine, "subtitles": _subtitles, "crop": _crop, "serve": _serve}
    try:
        ffutil.check_ffmpeg()
        handlers[args.command](args)
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
