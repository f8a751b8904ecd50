"""Scenario Classifier - decides which ingestion path applies to a photo."""

import logging

from ..errors import IngestionError
from ..models import ScenarioClassification, ScenarioType, SourceImage
from ..services.vision_client import VisionClassifierClient


logger = logging.getLogger(__name__)


class ScenarioClassifier:
    """Classifies a photo as person-wearing, multi-item or single-item.

    Never raises: any failure, or an answer below ``min_confidence``,
    yields a zero-confidence SINGLE_ITEM classification. Single-item
    processing is always valid, so the worst case of a wrong default is a
    multi-item photo stored as one item.
    """

    def __init__(self, vision: VisionClassifierClient, min_confidence: float = 0.4):
        self.vision = vision
        self.min_confidence = min_confidence

    async def classify(self, image: SourceImage) -> ScenarioClassification:
        try:
            response = await self.vision.classify_scenario(image)
        except IngestionError as exc:
            logger.warning(
                "Scenario classification failed (%s: %s); defaulting to single item",
                type(exc).__name__,
                exc.message,
            )
            return ScenarioClassification.fallback()

        if response.confidence < self.min_confidence:
            logger.warning(
                "Scenario confidence %.2f below threshold %.2f; defaulting to single item",
                response.confidence,
                self.min_confidence,
            )
            return ScenarioClassification.fallback()

        scenario = self.decide(response.has_subject, response.item_count)
        if scenario != response.scenario_type:
            logger.debug(
                "Model labelled scenario '%s' but reported fields imply '%s'",
                response.scenario_type.value,
                scenario.value,
            )

        return ScenarioClassification(
            scenario_type=scenario,
            detected_region_count=response.item_count,
            confidence=response.confidence,
        )

    @staticmethod
    def decide(has_subject: bool, item_count: int) -> ScenarioType:
        """A human subject wins; otherwise more than one item means multi-item."""
        if has_subject:
            return ScenarioType.PERSON_WEARING
        if item_count > 1:
            return ScenarioType.MULTI_ITEM
        return ScenarioType.SINGLE_ITEM
