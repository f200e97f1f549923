"""
Export service for converting coaching records to various formats.

Supports export to:
- JSON: Full record with all metadata; parses back into the same model
- YAML: Same content as JSON, for hand editing; parses back too
- Markdown: Human-readable story / session / evaluation summaries
"""

import json
from datetime import datetime, timezone
from typing import List, Type, TypeVar

import structlog
import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from story_coach.core.exceptions import ValidationError
from story_coach.domain.models.coaching import CoachSession, QuestionSheet
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.domain.models.evaluation import (
    CoachedStoryResult,
    ComparisonResult,
    PipelineResult,
    StoryEvaluation,
)
from story_coach.domain.models.story import GeneratedStory

log = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

FORMATS = ("json", "yaml", "markdown")


class ExportService:
    """
    Service for exporting records to JSON, YAML and Markdown.

    Usage:
        service = ExportService()
        text = service.export(story, "markdown")
        story = service.load_story(service.to_json(story))
    """

    def export(self, record: BaseModel, fmt: str = "json") -> str:
        """
        Raises:
            ValidationError: If the format is not supported
        """
        fmt = fmt.lower()
        if fmt == "json":
            return self.to_json(record)
        if fmt == "yaml":
            return self.to_yaml(record)
        if fmt in ("markdown", "md"):
            return self.to_markdown(record)
        raise ValidationError(f"Unsupported export format '{fmt}', use one of {FORMATS}")

    def to_json(self, record: BaseModel) -> str:
        """Export to JSON format."""
        return record.model_dump_json(indent=2)

    def to_yaml(self, record: BaseModel) -> str:
        """Export to YAML format."""
        data = record.model_dump(mode="json")
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)

    # =========================================================================
    # Loading
    # =========================================================================

    def load_story(self, text: str, fmt: str = "json") -> GeneratedStory:
        return self._load(GeneratedStory, text, fmt)

    def load_session(self, text: str, fmt: str = "json") -> CoachSession:
        return self._load(CoachSession, text, fmt)

    def load_entry(self, text: str, fmt: str = "json") -> NarrativeEntry:
        return self._load(NarrativeEntry, text, fmt)

    def _load(self, model: Type[ModelT], text: str, fmt: str) -> ModelT:
        """
        Raises:
            ValidationError: On unparseable text or data that does not fit
        """
        fmt = fmt.lower()
        try:
            if fmt == "json":
                data = json.loads(text)
            elif fmt == "yaml":
                data = yaml.safe_load(text)
            else:
                raise ValidationError(f"Cannot load {model.__name__} from '{fmt}'")
            return model.model_validate(data)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValidationError(f"Could not parse {fmt} {model.__name__}: {e}") from e
        except PydanticValidationError as e:
            log.warning("record_load_failed", model=model.__name__, errors=e.error_count())
            raise ValidationError(f"Invalid {model.__name__}: {e}") from e

    # =========================================================================
    # Markdown
    # =========================================================================

    def to_markdown(self, record: BaseModel) -> str:
        """Export to human-readable Markdown format."""
        if isinstance(record, GeneratedStory):
            lines = self._story_lines(record)
        elif isinstance(record, CoachSession):
            lines = self._session_lines(record)
        elif isinstance(record, StoryEvaluation):
            lines = self._evaluation_lines(record, heading="# Story Evaluation")
        elif isinstance(record, ComparisonResult):
            lines = self._comparison_lines(record)
        elif isinstance(record, PipelineResult):
            lines = self._pipeline_lines(record)
        elif isinstance(record, CoachedStoryResult):
            lines = self._coached_story_lines(record)
        elif isinstance(record, QuestionSheet):
            lines = self._question_lines(record)
        else:
            lines = [
                f"# {type(record).__name__}",
                "",
                "```yaml",
                self.to_yaml(record).rstrip(),
                "```",
                "",
            ]

        lines.append("---")
        lines.append(f"*Exported on {datetime.now(timezone.utc).isoformat()}*")
        lines.append("")
        return "\n".join(lines)

    def _story_lines(self, story: GeneratedStory, level: int = 1) -> List[str]:
        h = "#" * level
        lines = [f"{h} {story.title}", ""]
        lines.append(f"> {story.hook}")
        lines.append("")
        lines.append(f"**Framework:** {story.framework.value}")
        if story.archetype:
            lines.append(f"**Archetype:** {story.archetype.value}")
        lines.append(f"**Coached:** {'yes' if story.with_coaching else 'no'}")
        lines.append("")

        for key, section in story.sections.items():
            lines.append(f"{h}# {key.title()}")
            lines.append("")
            lines.append(section.summary)
            lines.append("")
            for ref in section.evidence:
                label = f"`{ref.activity_id}`" if ref.activity_id else ""
                lines.append(f"- {' '.join(p for p in (label, ref.description or '') if p)}")
            if section.evidence:
                lines.append("")

        if story.reasoning:
            lines.append(f"*{story.reasoning}*")
            lines.append("")
        return lines

    def _session_lines(self, session: CoachSession) -> List[str]:
        lines = ["# Coaching Session", ""]
        lines.append(f"**Session ID:** `{session.id}`")
        lines.append(f"**Entry:** `{session.entry_id}`")
        lines.append(f"**Archetype:** {session.archetype.value}")
        lines.append(f"**Mode:** {session.mode.value}")
        lines.append(f"**Status:** {session.status.value}")
        lines.append(f"**Questions asked:** {session.questions_asked}")
        lines.append("")

        if session.exchanges:
            lines.append("## Conversation")
            lines.append("")
            for exchange in session.exchanges:
                marker = " (follow-up)" if exchange.is_follow_up else ""
                lines.append(f"### {exchange.phase.value.title()}{marker}")
                lines.append("")
                lines.append(f"**Coach:** {exchange.question}")
                lines.append("")
                lines.append(f"**You:** {exchange.answer or '*(skipped)*'}")
                lines.append("")

        filled = session.extracted_context.model_dump()
        details = [(k, v) for k, v in filled.items() if v]
        if details:
            lines.append("## Extracted Details")
            lines.append("")
            for key, value in details:
                shown = ", ".join(value) if isinstance(value, list) else value
                lines.append(f"- **{key.replace('_', ' ')}:** {shown}")
            lines.append("")

        if session.flags:
            lines.append("## Flags")
            lines.append("")
            lines.extend(f"- {flag}" for flag in session.flags)
            lines.append("")
        return lines

    def _question_lines(self, sheet: QuestionSheet) -> List[str]:
        lines = [f"# Coaching Questions: {sheet.session.archetype.value}", ""]
        lines.append(f"**Entry:** `{sheet.session.entry_id}`")
        lines.append("")
        for number, question in enumerate(sheet.questions, start=1):
            lines.append(f"**[{question.phase.value.upper()}] Q{number}:** {question.question}")
            if question.hint:
                lines.append(f"*Hint: {question.hint}*")
            lines.append("")
        return lines

    def _evaluation_lines(self, evaluation: StoryEvaluation, heading: str) -> List[str]:
        lines = [heading, ""]
        lines.append(f"**Score:** {evaluation.score}/10")
        lines.append("")
        lines.append("| Dimension | Score |")
        lines.append("|---|---|")
        for name, value in evaluation.breakdown.model_dump().items():
            lines.append(f"| {name.replace('_', ' ')} | {value:g} |")
        lines.append("")
        lines.append(f'Coach: "{evaluation.coach_comment}"')
        lines.append("")
        if evaluation.suggestions:
            lines.extend(f"- {s}" for s in evaluation.suggestions)
            lines.append("")
        return lines

    def _comparison_lines(self, result: ComparisonResult) -> List[str]:
        improvement = result.improvement
        percent = (
            f"{improvement.percent_improvement:+.1f}%"
            if improvement.percent_improvement is not None
            else "n/a"
        )
        lines = [f"# Coaching Comparison ({result.framework.value})", ""]
        lines.append(f"**Archetype:** {result.archetype.value}")
        lines.append(
            f"**Basic:** {result.basic.evaluation.score} | "
            f"**Coached:** {result.enhanced.evaluation.score} | "
            f"**Delta:** {improvement.score_delta:+.1f} ({percent})"
        )
        lines.append("")
        if improvement.key_differences:
            lines.append("## Key Differences")
            lines.append("")
            lines.extend(f"- {d}" for d in improvement.key_differences)
            lines.append("")
        lines.append("## Basic Story")
        lines.append("")
        lines.extend(self._story_lines(result.basic.story, level=3))
        lines.append("## Coached Story")
        lines.append("")
        lines.extend(self._story_lines(result.enhanced.story, level=3))
        return lines

    def _coached_story_lines(self, result: CoachedStoryResult) -> List[str]:
        session = result.session
        lines = [f"# Coached Story: `{result.entry_id}`", ""]
        lines.append(
            f"**Archetype:** {session.archetype.value} | **Mode:** {session.mode.value} | "
            f"**Questions asked:** {session.questions_asked}"
        )
        lines.append("")
        lines.extend(self._story_lines(result.story, level=2))
        lines.extend(self._evaluation_lines(result.evaluation, heading="## Evaluation"))
        return lines

    def _pipeline_lines(self, result: PipelineResult) -> List[str]:
        detection = result.detection
        lines = [f"# Pipeline Result: `{result.entry_id}`", ""]
        lines.append(
            f"**Archetype:** {detection.primary.archetype.value} "
            f"({detection.primary.confidence:.2f}, {detection.source})"
        )
        lines.append("")
        lines.extend(self._story_lines(result.story, level=2))
        lines.extend(self._evaluation_lines(result.evaluation, heading="## Evaluation"))
        return lines

