"""Classification and pipeline result models."""

from enum import Enum

from pydantic import BaseModel, Field, computed_field

from .garment import GarmentRecord, ScenarioType


class PipelineStage(str, Enum):
    """Where in the pipeline an error originated."""

    CLASSIFICATION = "classification"
    EXTRACTION = "extraction"
    SEPARATION = "separation"
    SINGLE_ITEM = "single_item"
    BACKGROUND_REMOVAL = "background_removal"
    CATEGORIZATION = "categorization"
    IMAGE_FETCH = "image_fetch"


class PipelineError(BaseModel):
    """Serializable error detail surfaced to the caller."""

    stage: PipelineStage
    call: str | None = Field(default=None, description="External call that failed, if any")
    error_type: str
    message: str


class ScenarioClassification(BaseModel):
    """Which scenario applies to a source image."""

    scenario_type: ScenarioType
    detected_region_count: int = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)

    @classmethod
    def fallback(cls) -> "ScenarioClassification":
        """Zero-confidence single-item default used when classification fails."""
        return cls(
            scenario_type=ScenarioType.SINGLE_ITEM,
            detected_region_count=1,
            confidence=0.0,
        )


class PipelineResult(BaseModel):
    """Uniform outcome of one ingestion run, including partial failures."""

    success: bool
    scenario: ScenarioType
    items: list[GarmentRecord] = Field(default_factory=list)
    errors: list[PipelineError] = Field(default_factory=list)
    detected_region_count: int = 0
    fallback_used: bool = False
    classification: ScenarioClassification | None = None

    @computed_field
    @property
    def items_added(self) -> int:
        return len(self.items)
