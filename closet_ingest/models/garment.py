"""Garment models produced and consumed by the ingestion stages."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .image import SourceImage


class ScenarioType(str, Enum):
    """The three mutually exclusive photo types the pipeline recognizes."""

    PERSON_WEARING = "person-wearing"
    MULTI_ITEM = "multi-item"
    SINGLE_ITEM = "single-item"


class ClothingCategory(str, Enum):
    """Closet storage categories."""

    SHIRTS = "shirts"
    PANTS = "pants"
    SKIRTS = "skirts"
    DRESSES = "dresses"
    SHOES = "shoes"
    ACCESSORIES = "accessories"
    OUTERWEAR = "outerwear"
    TOPS = "tops"
    JACKETS = "jackets"
    SWEATERS = "sweaters"
    OTHER = "other"

    @classmethod
    def from_model_label(cls, label: str | None) -> "ClothingCategory":
        """Map a free-form model category onto a closet category."""
        if not label:
            return cls.OTHER
        normalized = label.strip().lower()
        if normalized == "bottoms":
            return cls.PANTS
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


class BoundingBox(BaseModel):
    """Rectangle normalized to [0, 1] of the image, top-left origin.

    Raw model output is accepted as-is; run it through
    ``utils.geometry.clamp_box`` before use.
    """

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float

    @property
    def is_normalized(self) -> bool:
        return (
            self.x >= 0
            and self.y >= 0
            and self.width >= 0
            and self.height >= 0
            and self.x + self.width <= 1
            and self.y + self.height <= 1
        )


class DetectedGarment(BaseModel):
    """One garment region reported by the vision model."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str = Field(description="e.g., 'jacket', 'shirt', 'pants'")
    bounding_box: BoundingBox = Field(alias="boundingBox")
    confidence: float = Field(ge=0.0, le=1.0)


class GarmentAttributes(BaseModel):
    """Descriptive attributes of one isolated garment."""

    model_config = ConfigDict(populate_by_name=True)

    color: str = Field(description="Primary color of the garment")
    secondary_colors: list[str] = Field(default_factory=list, alias="secondaryColors")
    material: str = Field(description="e.g., 'cotton', 'denim', 'wool'")
    style: str = Field(description="e.g., 'casual', 'formal', 'athletic'")
    fit: str | None = None
    pattern: str | None = None
    season: list[str] = Field(default_factory=list)
    occasion: list[str] = Field(default_factory=list)


class GarmentDescription(BaseModel):
    """Structured categorization of one isolated garment image."""

    name: str
    category: ClothingCategory
    attributes: GarmentAttributes
    confidence: float = Field(ge=0.0, le=1.0)
    clothing_type: str | None = None
    description: str | None = None
    brand: str | None = None


class CleanedGarmentImage(BaseModel):
    """Background-removed image returned by the matting service."""

    model_config = ConfigDict(frozen=True)

    image_url: str
    mask_url: str | None = None
    model_used: str
    processing_time_ms: int = Field(ge=0)

    def as_source(self) -> SourceImage:
        return SourceImage.from_url(self.image_url)


class CroppedRegion(BaseModel):
    """A cropped image plus the padded, clamped box that produced it."""

    model_config = ConfigDict(frozen=True)

    image: SourceImage
    bounding_box: BoundingBox


class GarmentRecord(BaseModel):
    """Closet-ready output unit: one cleaned, categorized garment."""

    image: CleanedGarmentImage
    name: str
    category: ClothingCategory
    attributes: GarmentAttributes
    confidence: float = Field(ge=0.0, le=1.0)
    source_bounding_box: BoundingBox | None = None
    was_extracted_from_subject: bool = False
    clothing_type: str | None = None
    description: str | None = None
    brand: str | None = None

    @classmethod
    def build(
        cls,
        image: CleanedGarmentImage,
        description: GarmentDescription,
        *,
        source_bounding_box: BoundingBox | None = None,
        was_extracted_from_subject: bool = False,
    ) -> "GarmentRecord":
        return cls(
            image=image,
            name=description.name,
            category=description.category,
            attributes=description.attributes,
            confidence=description.confidence,
            source_bounding_box=source_bounding_box,
            was_extracted_from_subject=was_extracted_from_subject,
            clothing_type=description.clothing_type,
            description=description.description,
            brand=description.brand,
        )
