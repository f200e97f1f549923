"""
Application settings management.

Settings are loaded from environment variables with .env file support.
Coaching behaviour (interview limits, detection thresholds, frameworks) is
loaded from config/coach_config.yaml. All configuration is validated using
Pydantic.
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )
    logs_dir: Path = Field(
        default=Path("logs"), description="Directory for session log files"
    )

    # ==========================================================================
    # LLM Configuration
    # ==========================================================================
    #
    # Three-client architecture:
    # - classification: archetype detection
    # - extraction: auto-extract context and coaching follow-ups
    # - generation: story composition
    #
    # Defaults live in story_coach/llm/client.py. Set the variables below only
    # to override them (e.g., LLM_GENERATION_PROVIDER=deepseek).

    llm_enabled: bool = Field(
        default=False,
        description="Use LLM backends; when false everything runs on heuristics/templates",
    )
    llm_classification_provider: Optional[str] = Field(
        default=None, description="Override classification provider (default: anthropic)"
    )
    llm_extraction_provider: Optional[str] = Field(
        default=None, description="Override extraction provider (default: anthropic)"
    )
    llm_generation_provider: Optional[str] = Field(
        default=None, description="Override generation provider (default: anthropic)"
    )

    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API key")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    deepseek_api_key: Optional[str] = Field(default=None, description="DeepSeek API key")

    llm_max_retries: int = Field(
        default=2, ge=0, le=5, description="Retries after the first attempt"
    )
    llm_call_deadline_seconds: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Overall budget for one LLM call including retries",
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Coach Configuration (from YAML)
# ============================================================================


class InterviewSettings(BaseModel):
    """Interactive interview limits and answer handling."""

    max_questions: int = Field(
        default=6, ge=1, le=20, description="Cap on exchanges, follow-ups included"
    )
    allow_skip: bool = Field(default=True, description="Empty answers skip a question")
    dynamic_follow_ups: bool = Field(
        default=True, description="Ask the coaching backend for follow-up questions"
    )
    max_consecutive_non_answers: int = Field(
        default=2,
        ge=1,
        le=6,
        description="Non-answers in a row before the phase is flagged and skipped",
    )
    non_answer_phrases: List[str] = Field(
        default_factory=lambda: [
            "i don't know",
            "i dont know",
            "don't know",
            "dont know",
            "not sure",
            "no idea",
            "idk",
            "n/a",
        ]
    )
    exit_commands: List[str] = Field(default_factory=lambda: ["done", "quit"])


class DetectionSettings(BaseModel):
    """Heuristic archetype scoring parameters."""

    default_archetype: str = Field(default="architect")
    default_confidence: float = Field(default=0.1, ge=0.0, le=1.0)
    base_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    confidence_step: float = Field(default=0.15, ge=0.0, le=1.0)
    max_confidence: float = Field(default=0.95, ge=0.0, le=1.0)
    min_alternative_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    max_alternatives: int = Field(default=2, ge=0, le=7)


class GenerationSettings(BaseModel):
    """Story generation defaults."""

    default_framework: str = Field(default="SOAR")
    comparison_framework: str = Field(default="SOAR")
    max_summary_chars: int = Field(default=600, ge=80, le=4000)
    max_hook_chars: int = Field(default=220, ge=40, le=600)


class BatchSettings(BaseModel):
    """Batch pipeline execution."""

    max_concurrency: int = Field(default=4, ge=1, le=64)


class CoachConfig(BaseModel):
    """
    Complete coaching configuration loaded from coach_config.yaml.
    """

    interview: InterviewSettings = Field(default_factory=InterviewSettings)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)

    @field_validator("detection")
    @classmethod
    def check_confidence_bounds(cls, v: DetectionSettings) -> DetectionSettings:
        """Reject a heuristic scale whose base exceeds its ceiling."""
        if v.base_confidence > v.max_confidence:
            raise ValueError("base_confidence must not exceed max_confidence")
        return v


def load_coach_config(config_path: Optional[Path] = None) -> CoachConfig:
    """
    Load coaching configuration from YAML file.

    Args:
        config_path: Path to coach_config.yaml. If None, looks next to the
            project root and then in the current working directory.

    Returns:
        CoachConfig with validated settings (defaults when no file exists)

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        project_root = Path(__file__).resolve().parent.parent.parent
        candidates = [
            project_root / "config" / "coach_config.yaml",
            Path.cwd() / "config" / "coach_config.yaml",
        ]
        config_path = next((p for p in candidates if p.exists()), None)
        if config_path is None:
            return CoachConfig()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return CoachConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return CoachConfig()

    return CoachConfig(**config_data)


# Global settings instance
settings = Settings()

# Global coach config instance
coach_config = load_coach_config()
