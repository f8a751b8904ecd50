"""Scenario handlers and the adapters they share."""

from .categorizer import GarmentCategorizer
from .garment_extractor import ExtractionResult, GarmentExtractor
from .multi_garment_separator import MultiGarmentSeparator, SeparationResult
from .scenario_classifier import ScenarioClassifier
from .single_item_processor import SingleItemProcessor

__all__ = [
    "GarmentCategorizer",
    "ExtractionResult",
    "GarmentExtractor",
    "MultiGarmentSeparator",
    "SeparationResult",
    "ScenarioClassifier",
    "SingleItemProcessor",
]
