"""Data models for the closet ingestion pipeline."""

from .image import SourceImage
from .garment import (
    BoundingBox,
    CleanedGarmentImage,
    ClothingCategory,
    CroppedRegion,
    DetectedGarment,
    GarmentAttributes,
    GarmentDescription,
    GarmentRecord,
    ScenarioType,
)
from .results import PipelineError, PipelineResult, PipelineStage, ScenarioClassification

__all__ = [
    "SourceImage",
    "BoundingBox",
    "CleanedGarmentImage",
    "ClothingCategory",
    "CroppedRegion",
    "DetectedGarment",
    "GarmentAttributes",
    "GarmentDescription",
    "GarmentRecord",
    "ScenarioType",
    "PipelineError",
    "PipelineResult",
    "PipelineStage",
    "ScenarioClassification",
]
