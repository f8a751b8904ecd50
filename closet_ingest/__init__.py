"""Closet ingestion - turn one clothing photo into closet-ready garment records."""

from .config import PipelineConfig, load_config
from .errors import IngestionError
from .models import GarmentRecord, PipelineResult, ScenarioType, SourceImage
from .pipeline import ClosetIngestionPipeline

__all__ = [
    "PipelineConfig",
    "load_config",
    "IngestionError",
    "GarmentRecord",
    "PipelineResult",
    "ScenarioType",
    "SourceImage",
    "ClosetIngestionPipeline",
]
