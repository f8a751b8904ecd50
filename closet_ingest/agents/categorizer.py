"""Categorization Adapter - structured description of one isolated garment."""

import logging

from ..models import ClothingCategory, GarmentDescription, SourceImage
from ..services.cache import ResultCache, options_hash
from ..services.vision_client import DESCRIBE_GARMENT, VisionClassifierClient


logger = logging.getLogger(__name__)


class GarmentCategorizer:
    """Turns a cleaned garment image into a GarmentDescription.

    Answers are memoized per image reference, so re-categorizing the same
    cleaned image (e.g. on the fallback path) costs nothing.
    """

    def __init__(
        self,
        vision: VisionClassifierClient,
        cache: ResultCache[GarmentDescription] | None = None,
    ):
        self.vision = vision
        self.cache = cache if cache is not None else ResultCache()
        self._options_digest = options_hash({"query": DESCRIBE_GARMENT.name})

    async def categorize(self, image: SourceImage) -> GarmentDescription:
        """Describe a garment image.

        Raises:
            CategorizationFailed: the vision call failed or timed out
            MalformedModelResponse: the answer was missing required fields
        """
        cache_key = self.cache.make_key(image.reference, self._options_digest)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("Categorization cache hit for %s", image.describe())
            return cached

        response = await self.vision.describe_garment(image)
        description = GarmentDescription(
            name=response.name,
            category=ClothingCategory.from_model_label(response.category),
            attributes=response.attributes,
            confidence=response.confidence,
            clothing_type=response.clothing_type,
            description=response.description,
            brand=response.brand,
        )
        logger.info("Categorized %s as '%s' (%s)", image.describe(), description.name, description.category.value)
        return self.cache.put_if_absent(cache_key, description)

    def clear_cache(self) -> None:
        self.cache.clear()
