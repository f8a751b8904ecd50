"""Closet ingestion pipeline - one uploaded photo in, closet-ready garments out."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from ..agents import (
    GarmentCategorizer,
    GarmentExtractor,
    MultiGarmentSeparator,
    ScenarioClassifier,
    SingleItemProcessor,
)
from ..config import PipelineConfig
from ..errors import IngestionError, SeparationFailed
from ..models import (
    GarmentRecord,
    PipelineError,
    PipelineResult,
    PipelineStage,
    ScenarioClassification,
    ScenarioType,
    SourceImage,
)
from ..services import BackgroundRemovalClient, ImageFetcher, ResultCache, VisionClassifierClient
from ..utils.progress import ProgressCallback, report


logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Per-invocation state machine."""

    START = "start"
    CLASSIFYING = "classifying"
    EXTRACTING = "extracting"
    SEPARATING = "separating"
    SINGLE_PROCESSING = "single_processing"
    AGGREGATING = "aggregating"
    DONE = "done"


_HANDLER_MESSAGES = {
    ScenarioType.PERSON_WEARING: "Detecting person and garments...",
    ScenarioType.MULTI_ITEM: "Detecting multiple items...",
    ScenarioType.SINGLE_ITEM: "Processing item...",
}

_HANDLER_STATES = {
    ScenarioType.PERSON_WEARING: (PipelineState.EXTRACTING, PipelineStage.EXTRACTION),
    ScenarioType.MULTI_ITEM: (PipelineState.SEPARATING, PipelineStage.SEPARATION),
    ScenarioType.SINGLE_ITEM: (PipelineState.SINGLE_PROCESSING, PipelineStage.SINGLE_ITEM),
}


@dataclass
class HandlerOutcome:
    """What a scenario handler produced before aggregation."""
    items: list[GarmentRecord]
    detected_count: int
    failures: list[PipelineError] = field(default_factory=list)


Handler = Callable[[SourceImage, ProgressCallback | None], Awaitable[HandlerOutcome]]


class ClosetIngestionPipeline:
    """Routes a photo to the handler for its scenario and aggregates the result.

    Flow:
    1. Classify the photo (never fails; defaults to single item)
    2. Dispatch to the extractor, separator or single-item processor
    3. If the extractor or separator raises or yields nothing, retry once
       with the single-item processor on the original image
    4. Aggregate into a PipelineResult

    ``process_upload`` always returns a PipelineResult. ``success`` is
    False only when the last handler tried also failed.

    Clients passed in are shared and left open; clients created here are
    closed by ``close()``.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        vision: VisionClassifierClient | None = None,
        background_removal: BackgroundRemovalClient | None = None,
        fetcher: ImageFetcher | None = None,
        background_cache: ResultCache | None = None,
        categorization_cache: ResultCache | None = None,
    ):
        self.config = config
        self._owned: list = []

        if fetcher is None:
            fetcher = ImageFetcher(timeout_seconds=config.fetch_timeout_seconds)
            self._owned.append(fetcher)
        self.fetcher = fetcher

        if vision is None:
            vision = VisionClassifierClient(config.vision, fetcher=fetcher)
        self.vision = vision

        if background_removal is None:
            background_removal = BackgroundRemovalClient(
                config.background_removal,
                cache=background_cache if background_cache is not None
                else ResultCache(max_entries=config.cache_max_entries),
            )
            self._owned.append(background_removal)
        self.background_removal = background_removal

        # Initialize agents
        self.categorizer = GarmentCategorizer(
            vision,
            cache=categorization_cache if categorization_cache is not None
            else ResultCache(max_entries=config.cache_max_entries),
        )
        self.classifier = ScenarioClassifier(
            vision,
            min_confidence=config.vision.min_scenario_confidence,
        )
        self.separator = MultiGarmentSeparator(
            vision,
            background_removal,
            self.categorizer,
            fetcher,
            padding=config.geometry.item_padding,
            max_concurrency=config.max_concurrent_items,
        )
        self.extractor = GarmentExtractor(
            vision,
            background_removal,
            self.categorizer,
            fetcher,
            separator=self.separator,
            padding=config.geometry.subject_padding,
        )
        self.single_item = SingleItemProcessor(background_removal, self.categorizer)

        self._handlers: dict[ScenarioType, Handler] = {
            ScenarioType.PERSON_WEARING: self._run_extractor,
            ScenarioType.MULTI_ITEM: self._run_separator,
            ScenarioType.SINGLE_ITEM: self._run_single_item,
        }
        missing = set(ScenarioType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for scenario(s): {sorted(s.value for s in missing)}")

    async def process_upload(
        self,
        image: SourceImage,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Run the full ingestion for one photo.

        Args:
            image: Uploaded photo, as a URL or an in-memory buffer
            on_progress: Optional callback receiving a short status message
                at each step

        Returns:
            PipelineResult; never raises for pipeline failures
        """
        state = PipelineState.START
        logger.info("Ingesting %s", image.describe())

        state = self._transition(state, PipelineState.CLASSIFYING)
        report(on_progress, "Analyzing photo...")
        classification = await self.classifier.classify(image)
        scenario = classification.scenario_type
        logger.info(
            "Scenario '%s' (confidence %.2f, ~%d item(s))",
            scenario.value,
            classification.confidence,
            classification.detected_region_count,
        )

        handler_state, handler_stage = _HANDLER_STATES[scenario]
        state = self._transition(state, handler_state)
        report(on_progress, _HANDLER_MESSAGES[scenario])
        outcome, errors = await self._attempt(
            self._handlers[scenario], image, handler_stage, on_progress,
        )

        fallback_used = False
        if (outcome is None or not outcome.items) and scenario != ScenarioType.SINGLE_ITEM:
            reason = "failed" if outcome is None else "found no items"
            logger.warning("%s handler %s; retrying as a single item", scenario.value, reason)
            fallback_used = True
            state = self._transition(state, PipelineState.SINGLE_PROCESSING)
            report(on_progress, "Processing with fallback method...")
            outcome, fallback_errors = await self._attempt(
                self._run_single_item, image, PipelineStage.SINGLE_ITEM, on_progress,
            )
            errors.extend(fallback_errors)

        state = self._transition(state, PipelineState.AGGREGATING)
        result = self._aggregate(scenario, classification, outcome, errors, fallback_used)
        self._transition(state, PipelineState.DONE)

        if result.success:
            logger.info(
                "Ingestion complete: %d item(s) added%s",
                result.items_added,
                " (partial)" if result.errors else "",
            )
        else:
            logger.error(
                "Ingestion failed with %d error(s): %s",
                len(result.errors),
                "; ".join(f"{e.stage.value}: {e.message}" for e in result.errors),
            )
        return result

    async def process_url(
        self,
        url: str,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Download and ingest a photo by URL.

        The photo is decoded up front so its size is known; an unreachable
        or undecodable URL yields a failed result at the image fetch stage.
        """
        try:
            image = await self.fetcher.load(url)
        except IngestionError as exc:
            logger.error("Could not load %s: %s", url[:100], exc.message)
            return PipelineResult(
                success=False,
                scenario=ScenarioType.SINGLE_ITEM,
                errors=[exc.to_pipeline_error()],
            )
        return await self.process_upload(image, on_progress)

    async def process_base64(
        self,
        value: str,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Ingest a base64 (or data URL) encoded photo.

        Raises:
            ValueError: the payload is not a decodable image
        """
        return await self.process_upload(SourceImage.from_data_url(value), on_progress)

    async def close(self):
        """Close the clients this pipeline created."""
        for client in self._owned:
            await client.close()

    async def _attempt(
        self,
        handler: Handler,
        image: SourceImage,
        stage: PipelineStage,
        on_progress: ProgressCallback | None,
    ) -> tuple[HandlerOutcome | None, list[PipelineError]]:
        """Run one handler, turning its failure into error records."""
        try:
            outcome = await handler(image, on_progress)
        except IngestionError as exc:
            logger.warning("%s failed: %s", stage.value, exc.message)
            region_failures = exc.failures if isinstance(exc, SeparationFailed) else []
            return None, [*region_failures, exc.to_pipeline_error()]
        except Exception as exc:
            logger.exception("Unexpected error during %s", stage.value)
            return None, [PipelineError(
                stage=stage,
                error_type=type(exc).__name__,
                message=str(exc),
            )]
        return outcome, list(outcome.failures)

    def _aggregate(
        self,
        scenario: ScenarioType,
        classification: ScenarioClassification,
        outcome: HandlerOutcome | None,
        errors: list[PipelineError],
        fallback_used: bool,
    ) -> PipelineResult:
        if outcome is None or not outcome.items:
            return PipelineResult(
                success=False,
                scenario=scenario,
                items=[],
                errors=errors,
                detected_region_count=classification.detected_region_count,
                fallback_used=fallback_used,
                classification=classification,
            )
        return PipelineResult(
            success=True,
            scenario=scenario,
            items=outcome.items,
            errors=errors,
            detected_region_count=outcome.detected_count,
            fallback_used=fallback_used,
            classification=classification,
        )

    async def _run_extractor(
        self,
        image: SourceImage,
        on_progress: ProgressCallback | None,
    ) -> HandlerOutcome:
        result = await self.extractor.extract(image, on_progress)
        logger.info(
            "Extracted %d item(s) from region %s%s",
            len(result.items),
            result.region.model_dump(),
            " after separation" if result.separated else "",
        )
        return HandlerOutcome(
            items=result.items,
            detected_count=len(result.items) + len(result.failures),
            failures=result.failures,
        )

    async def _run_separator(
        self,
        image: SourceImage,
        on_progress: ProgressCallback | None,
    ) -> HandlerOutcome:
        result = await self.separator.separate(image, on_progress=on_progress)
        return HandlerOutcome(
            items=result.items,
            detected_count=result.detected_count,
            failures=result.failures,
        )

    async def _run_single_item(
        self,
        image: SourceImage,
        on_progress: ProgressCallback | None,
    ) -> HandlerOutcome:
        record = await self.single_item.process(image, on_progress)
        return HandlerOutcome(items=[record], detected_count=1)

    @staticmethod
    def _transition(current: PipelineState, target: PipelineState) -> PipelineState:
        logger.debug("Pipeline state %s -> %s", current.value, target.value)
        return target
