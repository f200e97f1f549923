"""
Story Coach command line.

Usage:
    story-coach detect entry.json
    story-coach coach entry.json [--archetype firefighter] [--non-interactive | --auto-extract]
    story-coach coach-generate entry.json [--auto-extract] [--framework SOAR] [-d results/]
    story-coach generate entry.json [--session session.json] [--framework SOAR]
    story-coach evaluate story.json
    story-coach compare entry.json [-d results/]
    story-coach pipeline entry.json [more.json ...] [-d results/]

Records are read from JSON or YAML (by file extension) and written to
stdout, or to --output, as JSON, YAML or Markdown. With --output-dir, the
multi-stage commands write each intermediate record to its own file instead.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel

from story_coach.core.exceptions import StoryCoachError
from story_coach.core.logging import configure_logging, get_logger
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import CoachMode
from story_coach.domain.models.evaluation import PipelineResult
from story_coach.domain.models.story import Framework
from story_coach.services.export_service import ExportService
from story_coach.services.pipeline_service import StoryCoachService

log = get_logger(__name__)

exporter = ExportService()

EXTENSIONS = {"json": "json", "yaml": "yaml", "markdown": "md"}


def _format_of(path: Path) -> str:
    return "yaml" if path.suffix.lower() in (".yaml", ".yml") else "json"


def _read(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _emit(record: BaseModel, fmt: str, output: Optional[str]) -> None:
    text = exporter.export(record, fmt)
    if output:
        target = Path(output)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        print(f"Saved: {target}", file=sys.stderr)
    else:
        print(text)


def _save_all(records: Sequence[Tuple[str, BaseModel]], directory: Path, fmt: str) -> None:
    """Write each record to ``directory/<name>.<ext>``."""
    for name, record in records:
        _emit(record, fmt, str(directory / f"{name}.{EXTENSIONS[fmt]}"))


def _pipeline_records(result: PipelineResult) -> List[Tuple[str, BaseModel]]:
    return [
        ("1-archetype", result.detection),
        ("2-session", result.session),
        ("3-story", result.story),
        ("4-evaluation", result.evaluation),
    ]


async def _run(args: argparse.Namespace) -> int:
    service = StoryCoachService.from_settings()

    if args.command == "evaluate":
        story_path = Path(args.paths[0])
        story = exporter.load_story(_read(args.paths[0]), _format_of(story_path))
        _emit(service.evaluate(story), args.format, args.output)
        return 0

    entries = [exporter.load_entry(_read(p), _format_of(Path(p))) for p in args.paths]
    entry = entries[0]
    archetype = Archetype(args.archetype) if getattr(args, "archetype", None) else None
    framework = Framework(args.framework) if getattr(args, "framework", None) else None

    if args.command == "detect":
        _emit(await service.detect(entry), args.format, args.output)
    elif args.command == "coach":
        if args.non_interactive:
            _emit(await service.questions(entry, archetype), args.format, args.output)
        else:
            mode = CoachMode.AUTO_EXTRACT if args.auto_extract else CoachMode.INTERACTIVE
            _emit(await service.coach(entry, archetype, mode), args.format, args.output)
    elif args.command == "coach-generate":
        mode = CoachMode.AUTO_EXTRACT if args.auto_extract else CoachMode.INTERACTIVE
        result = await service.coach_generate(entry, framework, archetype, mode)
        if args.output_dir:
            records = [
                ("1-session", result.session),
                ("2-story", result.story),
                ("3-evaluation", result.evaluation),
            ]
            _save_all(records, Path(args.output_dir), args.format)
        else:
            _emit(result, args.format, args.output)
    elif args.command == "generate":
        session = None
        if args.session:
            session = exporter.load_session(_read(args.session), _format_of(Path(args.session)))
        story = await service.generate(entry, framework, archetype, session)
        _emit(story, args.format, args.output)
    elif args.command == "compare":
        comparison = await service.compare(entry, framework)
        if args.output_dir:
            records = [
                ("comparison", comparison),
                ("basic-story", comparison.basic.story),
                ("enhanced-story", comparison.enhanced.story),
                ("session", comparison.enhanced.session),
            ]
            _save_all(records, Path(args.output_dir), args.format)
        else:
            _emit(comparison, args.format, args.output)
    elif args.command == "pipeline":
        if len(entries) == 1:
            result = await service.pipeline(entry, framework)
            if args.output_dir:
                _save_all(_pipeline_records(result), Path(args.output_dir), args.format)
            else:
                _emit(result, args.format, args.output)
        else:
            items = await service.run_batch(entries, framework)
            for item in items:
                if item.ok and args.output_dir:
                    target = Path(args.output_dir) / item.entry_id
                    _save_all(_pipeline_records(item.result), target, args.format)
                elif item.ok:
                    _emit(item.result, args.format, None)
                else:
                    print(f"{item.entry_id}: {item.error}", file=sys.stderr)
            return 0 if all(item.ok for item in items) else 1
    return 0


def _add_output_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-d",
        "--output-dir",
        help="Write every intermediate record to its own file in this directory",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="story-coach",
        description="Turn career journal entries into compelling stories",
    )
    parser.add_argument(
        "--format",
        choices=["json", "yaml", "markdown"],
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument("-o", "--output", help="Write to this file instead of stdout")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("detect", help="Detect the story archetype").add_argument("paths", nargs=1)

    coach = sub.add_parser("coach", help="Run a coaching session")
    coach.add_argument("paths", nargs=1)
    coach.add_argument("-a", "--archetype", choices=[a.value for a in Archetype])
    modes = coach.add_mutually_exclusive_group()
    modes.add_argument("-n", "--non-interactive", action="store_true", help="Only list the questions")
    modes.add_argument("--auto-extract", action="store_true", help="Extract context without asking")

    coach_generate = sub.add_parser(
        "coach-generate", help="Coach, then generate and evaluate a story"
    )
    coach_generate.add_argument("paths", nargs=1)
    coach_generate.add_argument("-a", "--archetype", choices=[a.value for a in Archetype])
    coach_generate.add_argument("-f", "--framework", choices=[f.value for f in Framework])
    coach_generate.add_argument(
        "--auto-extract", action="store_true", help="Extract context without asking"
    )
    _add_output_dir(coach_generate)

    generate = sub.add_parser("generate", help="Generate a story")
    generate.add_argument("paths", nargs=1)
    generate.add_argument("-s", "--session", help="Coaching session file")
    generate.add_argument("-f", "--framework", choices=[f.value for f in Framework])
    generate.add_argument("-a", "--archetype", choices=[a.value for a in Archetype])

    sub.add_parser("evaluate", help="Score a story").add_argument("paths", nargs=1)

    compare = sub.add_parser("compare", help="Compare basic and coached stories")
    compare.add_argument("paths", nargs=1)
    compare.add_argument("-f", "--framework", choices=[f.value for f in Framework])
    _add_output_dir(compare)

    pipeline = sub.add_parser("pipeline", help="Detect, extract, generate and evaluate")
    pipeline.add_argument("paths", nargs="+")
    pipeline.add_argument("-f", "--framework", choices=[f.value for f in Framework])
    _add_output_dir(pipeline)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(write_file=False)

    try:
        return asyncio.run(_run(args))
    except StoryCoachError as e:
        log.error("command_failed", command=args.command, error=e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
