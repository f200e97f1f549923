"""
Custom exception hierarchy for the story coach.

All application exceptions inherit from StoryCoachError.
"""


class StoryCoachError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(StoryCoachError):
    """Invalid or missing configuration (including incomplete static tables)."""

    pass


# =============================================================================
# LLM Errors
# =============================================================================


class LLMError(StoryCoachError):
    """Base for LLM-related errors."""

    pass


class LLMTimeoutError(LLMError):
    """LLM call timed out or its deadline expired."""

    pass


class LLMRateLimitError(LLMError):
    """LLM rate limit exceeded."""

    pass


class LLMResponseParseError(LLMError):
    """Failed to parse LLM response."""

    pass


# =============================================================================
# Coaching Errors
# =============================================================================


class SessionError(StoryCoachError):
    """Coaching session error."""

    pass


class SessionCompletedError(SessionError):
    """Attempted to answer a session that is no longer in progress."""

    pass


class ExtractionError(StoryCoachError):
    """Context extraction backend failed."""

    pass


class ValidationError(StoryCoachError):
    """Input validation failed."""

    pass


# =============================================================================
# Story Errors
# =============================================================================


class StoryError(StoryCoachError):
    """Base for story generation and evaluation errors."""

    pass


class GenerationUnavailableError(StoryError):
    """Generation backend failed; no partially built story is returned."""

    pass


class StoryContractError(StoryError):
    """Story does not carry exactly the section keys of its framework."""

    pass
