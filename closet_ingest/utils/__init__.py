"""Pure helper functions."""

from .geometry import clamp_box, crop_image, crop_region, pad_box, to_parent_box, to_pixel_box
from .progress import ProgressCallback, report

__all__ = [
    "clamp_box",
    "crop_image",
    "crop_region",
    "pad_box",
    "to_parent_box",
    "to_pixel_box",
    "ProgressCallback",
    "report",
]
