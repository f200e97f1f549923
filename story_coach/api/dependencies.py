"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from story_coach.services.export_service import ExportService
from story_coach.services.pipeline_service import StoryCoachService


@lru_cache(maxsize=1)
def get_story_coach_service() -> StoryCoachService:
    """Shared StoryCoachService, built once per process from settings.

    Tests override this dependency with a service wired to mocked backends.
    """
    return StoryCoachService.from_settings()


def get_export_service() -> ExportService:
    return ExportService()


# Type aliases for dependency injection
StoryCoachDep = Annotated[StoryCoachService, Depends(get_story_coach_service)]
ExportDep = Annotated[ExportService, Depends(get_export_service)]
