"""PULSE command line — render a project JSON file to WAV."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import structlog

from pulse.config import Settings, settings
from pulse.console.renderer import OfflineRenderer, RenderProgress
from pulse.errors import RenderError
from pulse.grid.project import Project

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulse-render",
        description="Render a pattern-based project to 16-bit PCM WAV.",
    )
    parser.add_argument("project", type=Path, help="Project JSON document")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Output WAV path")
    parser.add_argument("--track", default=None, help="Render only this mixer track id")
    parser.add_argument("--stems", type=Path, default=None, help="Write one WAV per mixer track into DIR")
    parser.add_argument("--sample-rate", type=int, default=None)
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress progress output")
    return parser


def _print_progress(event: RenderProgress) -> None:
    print(f"[{event.progress:3d}%] {event.message}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        raw = json.loads(args.project.read_text(encoding="utf-8"))
        project = Project.from_dict(raw)
    except (AttributeError, OSError, ValueError, KeyError, TypeError) as e:
        logger.error("cli.project_unreadable", path=str(args.project), error=str(e))
        print(f"error: cannot read project {args.project}: {e}")
        return 2

    cfg = settings
    if args.sample_rate:
        cfg = Settings(**{**settings.model_dump(), "sample_rate": args.sample_rate})
    renderer = OfflineRenderer(settings=cfg)
    on_progress = None if args.quiet else _print_progress

    try:
        if args.stems is not None:
            args.stems.mkdir(parents=True, exist_ok=True)
            stems = renderer.render_stems(project, on_progress=on_progress)
            for track_id, result in stems.items():
                path = args.stems / f"{track_id}.wav"
                path.write_bytes(result.wav)
                print(f"Wrote {path} ({result.duration_seconds:.2f}s)")
            return 0

        output = args.output or cfg.output_dir / f"{args.project.stem}.wav"
        output.parent.mkdir(parents=True, exist_ok=True)
        result = renderer.render(project, only_track_id=args.track, on_progress=on_progress)
        output.write_bytes(result.wav)
        print(f"Wrote {output} ({result.duration_seconds:.2f}s @ {result.sample_rate} Hz)")
        return 0
    except RenderError as e:
        print(f"error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
