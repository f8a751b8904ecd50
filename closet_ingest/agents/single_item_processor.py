"""Single-Item Processor - whole-frame background removal plus categorization."""

import logging

from ..models import GarmentRecord, SourceImage
from ..services.background_removal import (
    GENERAL,
    HIGH_RESOLUTION,
    BackgroundRemovalClient,
    RemovalOptions,
)
from ..utils.progress import ProgressCallback, report
from .categorizer import GarmentCategorizer


logger = logging.getLogger(__name__)


class SingleItemProcessor:
    """Treats the entire frame as one garment. No geometry step.

    Also the fallback target when classification fails or a richer
    handler finds nothing. Frames wider or taller than
    ``high_resolution_min_side`` pixels go through the high-resolution
    matting preset; frames of unknown size use ``options``.
    """

    def __init__(
        self,
        background_removal: BackgroundRemovalClient,
        categorizer: GarmentCategorizer,
        options: RemovalOptions = GENERAL,
        high_resolution_min_side: int = 2000,
    ):
        self.background_removal = background_removal
        self.categorizer = categorizer
        self.options = options
        self.high_resolution_min_side = high_resolution_min_side

    async def process(
        self,
        image: SourceImage,
        on_progress: ProgressCallback | None = None,
    ) -> GarmentRecord:
        options = self.options_for(image)
        logger.info(
            "Processing %s as a single item (%s)",
            image.describe(),
            options.model.value,
        )
        report(on_progress, "Removing background...")
        cleaned = await self.background_removal.remove_background(image, options)
        report(on_progress, "Categorizing item...")
        description = await self.categorizer.categorize(cleaned.as_source())
        return GarmentRecord.build(cleaned, description)

    def options_for(self, image: SourceImage) -> RemovalOptions:
        """Pick the matting preset for a frame of the given size."""
        largest_side = max(image.width or 0, image.height or 0)
        if largest_side > self.high_resolution_min_side:
            return HIGH_RESOLUTION
        return self.options
