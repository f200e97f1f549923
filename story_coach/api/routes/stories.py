"""
Story API routes.

Endpoints for generation, evaluation, comparison and the unattended
pipeline, plus Markdown/YAML export of stories.
"""

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse
import structlog

from story_coach.api.dependencies import ExportDep, StoryCoachDep
from story_coach.api.schemas import (
    BatchRequest,
    BatchResponse,
    EntryRequest,
    EvaluateRequest,
    GenerateRequest,
)
from story_coach.domain.models.evaluation import (
    ComparisonResult,
    PipelineResult,
    StoryEvaluation,
)
from story_coach.domain.models.story import GeneratedStory

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/stories", tags=["stories"])


@router.post("/generate", response_model=GeneratedStory)
async def generate_story(request: GenerateRequest, service: StoryCoachDep) -> GeneratedStory:
    return await service.generate(
        request.entry, request.framework, request.archetype, request.session
    )


@router.post("/evaluate", response_model=StoryEvaluation)
async def evaluate_story(request: EvaluateRequest, service: StoryCoachDep) -> StoryEvaluation:
    return service.evaluate(request.story)


@router.post("/compare", response_model=ComparisonResult)
async def compare_stories(request: EntryRequest, service: StoryCoachDep) -> ComparisonResult:
    """Basic vs coached story for one entry."""
    return await service.compare(request.entry, request.framework)


@router.post("/pipeline", response_model=PipelineResult)
async def run_pipeline(request: EntryRequest, service: StoryCoachDep) -> PipelineResult:
    """Detect, auto-extract, generate and evaluate in one call."""
    return await service.pipeline(request.entry, request.framework)


@router.post("/batch", response_model=BatchResponse)
async def run_batch(request: BatchRequest, service: StoryCoachDep) -> BatchResponse:
    items = await service.run_batch(request.entries, request.framework)
    return BatchResponse(items=items, failed=sum(1 for item in items if not item.ok))


@router.post("/export", response_class=PlainTextResponse)
async def export_story(
    request: EvaluateRequest,
    exporter: ExportDep,
    format: str = Query(default="markdown", pattern="^(json|yaml|markdown)$"),
) -> str:
    """Render a story as JSON, YAML or Markdown text."""
    return exporter.export(request.story, format)
