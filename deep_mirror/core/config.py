"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field
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
        description="Directory searched first for assessment_config.yaml",
    )

    # ==========================================================================
    # Persistence
    # ==========================================================================

    database_path: Path = Field(
        default=Path("data/deep_mirror.db"),
        description="Path to SQLite file backing the session snapshot",
    )
    storage_key: str = Field(
        default="deep-mirror-session",
        min_length=1,
        description="Fixed key the session snapshot is stored under",
    )
    storage_version: str = Field(
        default="2.0",
        min_length=1,
        description="Snapshot schema version; mismatching snapshots are ignored",
    )

    # ==========================================================================
    # AI service
    # ==========================================================================

    llm_provider: str = Field(default="anthropic", description="LLM provider name")
    llm_model: str = Field(
        default="claude-sonnet-4-20250514", description="Model used for all AI requests"
    )
    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key"
    )
    ai_request_timeout: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Wall-clock budget in seconds for one question/feedback/report request",
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Assessment Configuration (from YAML)
# ============================================================================


class StageDisplayConfig(BaseModel):
    """Display metadata for one probing stage.

    Question counts are not configurable; they are fixed in
    deep_mirror.domain.models.session.STAGE_QUESTION_COUNTS.
    """

    name: str
    subtitle: str
    description: str = ""


class GenerationConfig(BaseModel):
    """Sampling parameters for one kind of AI request."""

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, ge=64, le=8192)


def _default_stages() -> Dict[int, StageDisplayConfig]:
    return {
        1: StageDisplayConfig(
            name="The Surface",
            subtitle="Surface behaviour",
            description="Stress-reaction test: instinctive actions in concrete, high-frequency scenes",
        ),
        2: StageDisplayConfig(
            name="The Drive",
            subtitle="Deep motivation",
            description="Motive mining: the values behind the behaviour seen in stage 1",
        ),
        3: StageDisplayConfig(
            name="The Shadow",
            subtitle="Shadow and defence",
            description="Pressure test: extreme dilemmas that expose defence mechanisms",
        ),
    }


class GenerationSettings(BaseModel):
    """Per-task sampling parameters."""

    question: GenerationConfig = Field(
        default_factory=lambda: GenerationConfig(temperature=0.8, max_tokens=2048)
    )
    feedback: GenerationConfig = Field(
        default_factory=lambda: GenerationConfig(temperature=0.7, max_tokens=1024)
    )
    report: GenerationConfig = Field(
        default_factory=lambda: GenerationConfig(temperature=0.7, max_tokens=4096)
    )


class AssessmentConfig(BaseModel):
    """
    Complete assessment configuration loaded from assessment_config.yaml.

    Holds the stage display names used by prompts and the progress bar, and
    the generation parameters for each AI request type.
    """

    stages: Dict[int, StageDisplayConfig] = Field(default_factory=_default_stages)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)

    def stage_name(self, stage: int) -> str:
        """Return the display name of a probing stage, or an empty string."""
        config = self.stages.get(stage)
        return config.name if config else ""


def load_assessment_config(config_path: Optional[Path] = None) -> AssessmentConfig:
    """
    Load assessment configuration from YAML file.

    Args:
        config_path: Path to assessment_config.yaml. If None, looks in
            settings.config_dir and then the project config directory.

    Returns:
        AssessmentConfig with validated settings (defaults if no file exists)

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        configured = settings.config_dir / "assessment_config.yaml"
        project_config = (
            Path(__file__).resolve().parent.parent.parent
            / "config"
            / "assessment_config.yaml"
        )
        if configured.exists():
            config_path = configured
        elif project_config.exists():
            config_path = project_config
        else:
            return AssessmentConfig()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return AssessmentConfig()

    with open(str(config_path), encoding="utf-8") as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return AssessmentConfig()

    # Stages are partial overrides of the defaults
    stages = _default_stages()
    for stage, values in (config_data.get("stages") or {}).items():
        stages[int(stage)] = StageDisplayConfig(**values)
    config_data["stages"] = stages

    return AssessmentConfig(**config_data)


# Global settings instance
settings = Settings()

# Global assessment config instance
assessment_config = load_assessment_config()
