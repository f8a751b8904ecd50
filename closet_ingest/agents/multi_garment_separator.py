"""Multi-Garment Separator - splits one photo into independently cleaned items."""

import asyncio
import logging
from dataclasses import dataclass, field

from ..errors import IngestionError, SeparationFailed
from ..models import DetectedGarment, GarmentRecord, PipelineError, PipelineStage, SourceImage
from ..services.background_removal import GENERAL, BackgroundRemovalClient, RemovalOptions
from ..services.image_fetcher import ImageFetcher
from ..services.vision_client import VisionClassifierClient
from ..utils.geometry import clamp_box, crop_region
from ..utils.progress import ProgressCallback, report
from .categorizer import GarmentCategorizer


logger = logging.getLogger(__name__)


@dataclass
class SeparationResult:
    """Items that made it through crop, clean and categorize."""
    items: list[GarmentRecord]
    detected_count: int
    failures: list[PipelineError] = field(default_factory=list)

    @property
    def has_multiple_items(self) -> bool:
        return len(self.items) > 1


class MultiGarmentSeparator:
    """Detects every garment region and processes each one concurrently.

    Flow:
    1. One detection call for all garment boxes in the image
    2. Fewer than two boxes: nothing to separate, return no items
    3. Per box, concurrently: pad + clamp, crop, remove background, categorize
    4. Keep the items that finished all three steps

    A failing region is logged and dropped without cancelling its
    siblings. Only when every region fails does the separator raise.
    """

    def __init__(
        self,
        vision: VisionClassifierClient,
        background_removal: BackgroundRemovalClient,
        categorizer: GarmentCategorizer,
        fetcher: ImageFetcher,
        padding: float = 0.10,
        max_concurrency: int = 6,
        options: RemovalOptions = GENERAL,
    ):
        self.vision = vision
        self.background_removal = background_removal
        self.categorizer = categorizer
        self.fetcher = fetcher
        self.padding = padding
        self.max_concurrency = max_concurrency
        self.options = options

    async def separate(
        self,
        image: SourceImage,
        from_subject: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> SeparationResult:
        """Separate every garment in ``image``.

        Args:
            image: Photo that may hold several garments
            from_subject: Mark the resulting records as extracted from a worn outfit
            on_progress: Optional callback for user-facing status messages

        Returns:
            SeparationResult; ``items`` is empty when fewer than two regions were found

        Raises:
            SeparationFailed: detection failed, or every detected region failed
            MalformedModelResponse: detection answer did not match its schema
        """
        report(on_progress, "Detecting and separating items...")
        detection = await self.vision.detect_garments(image)
        garments = detection.items
        logger.info("Detected %d garment region(s) in %s", len(garments), image.describe())

        if len(garments) < 2:
            return SeparationResult(items=[], detected_count=len(garments))

        try:
            image_bytes = await self.fetcher.read(image)
        except IngestionError as exc:
            raise SeparationFailed(
                f"Could not read image for cropping: {exc.message}",
                call=exc.call,
            ) from exc

        report(on_progress, f"Found {len(garments)} items!")
        report(on_progress, "Removing backgrounds...")
        semaphore = asyncio.Semaphore(self.max_concurrency)
        total = len(garments)
        outcomes = await asyncio.gather(
            *(
                self._process_region(image_bytes, garment, index, total, semaphore, from_subject)
                for index, garment in enumerate(garments, start=1)
            ),
            return_exceptions=True,
        )

        items: list[GarmentRecord] = []
        failures: list[PipelineError] = []
        for index, (garment, outcome) in enumerate(zip(garments, outcomes), start=1):
            if isinstance(outcome, GarmentRecord):
                items.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                # CancelledError and friends are not ours to swallow
                raise outcome
            failure = _to_pipeline_error(outcome)
            failures.append(failure)
            logger.error(
                "Region %d/%d (%s) failed at %s: %s",
                index,
                total,
                garment.name,
                failure.stage.value,
                failure.message,
            )

        logger.info("Separated %d/%d garment(s)", len(items), total)
        if not items:
            raise SeparationFailed(
                f"All {total} detected regions failed",
                failures=failures,
            )
        return SeparationResult(items=items, detected_count=total, failures=failures)

    async def _process_region(
        self,
        image_bytes: bytes,
        garment: DetectedGarment,
        index: int,
        total: int,
        semaphore: asyncio.Semaphore,
        from_subject: bool,
    ) -> GarmentRecord:
        """Crop, clean and categorize one detected region."""
        async with semaphore:
            logger.debug("Processing region %d/%d: %s", index, total, garment.name)
            region = crop_region(image_bytes, garment.bounding_box, self.padding)
            cleaned = await self.background_removal.remove_background(region.image, self.options)
            description = await self.categorizer.categorize(cleaned.as_source())
            return GarmentRecord.build(
                cleaned,
                description,
                source_bounding_box=clamp_box(garment.bounding_box),
                was_extracted_from_subject=from_subject,
            )


def _to_pipeline_error(exc: Exception) -> PipelineError:
    if isinstance(exc, IngestionError):
        return exc.to_pipeline_error()
    # Degenerate boxes surface as ValueError from the geometry helpers
    return PipelineError(
        stage=PipelineStage.SEPARATION,
        error_type=type(exc).__name__,
        message=str(exc),
    )
