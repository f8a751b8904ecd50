"""Garment Extractor - isolates the garment worn by a person in a photo."""

import logging
from dataclasses import dataclass, field

from ..errors import ExtractionFailed, IngestionError
from ..models import BoundingBox, DetectedGarment, GarmentRecord, PipelineError, SourceImage
from ..services.background_removal import PORTRAIT, BackgroundRemovalClient, RemovalOptions
from ..services.image_fetcher import ImageFetcher
from ..services.vision_client import LOCATE_PRIMARY_GARMENT, VisionClassifierClient
from ..utils.geometry import clamp_box, crop_region, to_parent_box
from ..utils.progress import ProgressCallback, report
from .categorizer import GarmentCategorizer
from .multi_garment_separator import MultiGarmentSeparator


logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Records produced from one person-wearing photo."""
    items: list[GarmentRecord]
    region: BoundingBox
    separated: bool = False
    failures: list[PipelineError] = field(default_factory=list)


class GarmentExtractor:
    """Crops the primary worn garment out of a photo of a person.

    Flow:
    1. Locate one bounding box around the primary garment
    2. Pad by ``padding`` of the box size and clamp to the frame
    3. Crop and remove the background with the portrait model, since
       limbs and hair still reach into the crop
    4. Run the separator once over the cleaned crop; if it finds more than
       one garment (e.g. top + jacket) its items replace the single record
    5. Otherwise categorize the cleaned crop as a single record

    Every failure before step 4 is raised as ExtractionFailed. The
    secondary separation is best effort and never recurses further.
    """

    def __init__(
        self,
        vision: VisionClassifierClient,
        background_removal: BackgroundRemovalClient,
        categorizer: GarmentCategorizer,
        fetcher: ImageFetcher,
        separator: MultiGarmentSeparator | None = None,
        padding: float = 0.05,
        options: RemovalOptions = PORTRAIT,
    ):
        self.vision = vision
        self.background_removal = background_removal
        self.categorizer = categorizer
        self.fetcher = fetcher
        self.separator = separator
        self.padding = padding
        self.options = options

    async def extract(
        self,
        image: SourceImage,
        on_progress: ProgressCallback | None = None,
    ) -> ExtractionResult:
        """Extract garment records from a person-wearing photo.

        Args:
            image: Photo of a person wearing clothes
            on_progress: Optional callback for user-facing status messages

        Returns:
            ExtractionResult with at least one record

        Raises:
            ExtractionFailed: no garment located, or cropping/cleaning failed
            CategorizationFailed: the cleaned crop could not be described
        """
        report(on_progress, "Extracting clothing from photo...")
        garment = await self._locate(image)
        logger.info(
            "Primary garment '%s' at %s (confidence %.2f)",
            garment.name,
            garment.bounding_box.model_dump(),
            garment.confidence,
        )

        try:
            image_bytes = await self.fetcher.read(image)
            region = crop_region(image_bytes, garment.bounding_box, self.padding)
            cleaned = await self.background_removal.remove_background(region.image, self.options)
        except IngestionError as exc:
            raise ExtractionFailed(
                f"Could not isolate '{garment.name}': {exc.message}",
                call=exc.call,
            ) from exc
        except ValueError as exc:
            raise ExtractionFailed(f"Could not crop '{garment.name}': {exc}") from exc

        report(on_progress, "Checking for multiple items...")
        separated = await self._separate_cleaned(cleaned.as_source(), region.bounding_box)
        if separated is not None:
            report(on_progress, f"Found {len(separated.items)} items! Separating...")
            return separated

        report(on_progress, "Categorizing item...")
        description = await self.categorizer.categorize(cleaned.as_source())
        record = GarmentRecord.build(
            cleaned,
            description,
            source_bounding_box=clamp_box(garment.bounding_box),
            was_extracted_from_subject=True,
        )
        return ExtractionResult(items=[record], region=region.bounding_box)

    async def _locate(self, image: SourceImage) -> DetectedGarment:
        try:
            response = await self.vision.locate_primary_garment(image)
        except ExtractionFailed:
            raise
        except IngestionError as exc:
            raise ExtractionFailed(exc.message, call=exc.call) from exc

        if not response.items:
            raise ExtractionFailed(
                "No garment located on the subject",
                call=LOCATE_PRIMARY_GARMENT.call,
            )
        # Only one box is asked for; keep the most confident if the model sent more
        return max(response.items, key=lambda item: item.confidence)

    async def _separate_cleaned(
        self,
        cleaned: SourceImage,
        region: BoundingBox,
    ) -> ExtractionResult | None:
        """Secondary check for stacked garments inside the extracted crop."""
        if self.separator is None:
            return None

        try:
            result = await self.separator.separate(cleaned, from_subject=True)
        except IngestionError as exc:
            logger.warning(
                "Secondary separation skipped (%s: %s)",
                type(exc).__name__,
                exc.message,
            )
            return None

        if not result.has_multiple_items:
            return None

        logger.info("Extracted crop holds %d garments; using separated items", len(result.items))
        items = [
            item.model_copy(update={
                "source_bounding_box": to_parent_box(item.source_bounding_box, region)
                if item.source_bounding_box is not None else None,
            })
            for item in result.items
        ]
        return ExtractionResult(
            items=items,
            region=region,
            separated=True,
            failures=result.failures,
        )
