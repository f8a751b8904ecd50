"""Bounding-box padding, clamping, and image cropping.

Pure functions with no I/O beyond in-memory image decoding. Boxes are
normalized to [0, 1] with a top-left origin.
"""

import io

from PIL import Image

from ..models import BoundingBox, CroppedRegion, SourceImage


# Modes PNG can store without conversion
_PNG_MODES = {"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"}


def clamp_box(box: BoundingBox) -> BoundingBox:
    """Clamp a (possibly out-of-range) box so it lies inside the unit square."""
    left = min(max(box.x, 0.0), 1.0)
    top = min(max(box.y, 0.0), 1.0)
    right = min(max(box.x + box.width, 0.0), 1.0)
    bottom = min(max(box.y + box.height, 0.0), 1.0)

    width = max(right - left, 0.0)
    height = max(bottom - top, 0.0)
    if left + width > 1.0:
        width = 1.0 - left
    if top + height > 1.0:
        height = 1.0 - top

    return BoundingBox(x=left, y=top, width=width, height=height)


def pad_box(box: BoundingBox, padding: float) -> BoundingBox:
    """Grow a box by ``padding`` of its own size on every side, then clamp.

    Detectors tend to under-estimate garment edges; the clamp keeps the
    expanded box inside the image frame.
    """
    if padding < 0:
        raise ValueError(f"padding must be non-negative, got {padding}")

    return clamp_box(BoundingBox(
        x=box.x - padding * box.width,
        y=box.y - padding * box.height,
        width=box.width * (1 + 2 * padding),
        height=box.height * (1 + 2 * padding),
    ))


def to_parent_box(child: BoundingBox, parent: BoundingBox) -> BoundingBox:
    """Re-express a box found inside a crop in the crop's source frame."""
    return clamp_box(BoundingBox(
        x=parent.x + child.x * parent.width,
        y=parent.y + child.y * parent.height,
        width=child.width * parent.width,
        height=child.height * parent.height,
    ))


def is_degenerate(box: BoundingBox) -> bool:
    return box.width <= 0 or box.height <= 0


def to_pixel_box(box: BoundingBox, image_width: int, image_height: int) -> tuple[int, int, int, int]:
    """Convert a normalized box to a clamped ``(left, top, right, bottom)`` pixel box."""
    left = _clamp_int(round(box.x * image_width), 0, image_width)
    top = _clamp_int(round(box.y * image_height), 0, image_height)
    right = _clamp_int(round((box.x + box.width) * image_width), 0, image_width)
    bottom = _clamp_int(round((box.y + box.height) * image_height), 0, image_height)

    if right <= left or bottom <= top:
        raise ValueError(
            f"Bounding box {box.model_dump()} covers no pixels of a "
            f"{image_width}x{image_height} image"
        )
    return left, top, right, bottom


def crop_image(data: bytes, box: BoundingBox) -> bytes:
    """Crop encoded image bytes to a normalized box and return PNG bytes."""
    with Image.open(io.BytesIO(data)) as img:
        pixel_box = to_pixel_box(box, img.width, img.height)
        cropped = img.crop(pixel_box)
        if cropped.mode not in _PNG_MODES:
            cropped = cropped.convert("RGBA" if "A" in cropped.mode else "RGB")
        output = io.BytesIO()
        cropped.save(output, format="PNG")
        return output.getvalue()


def crop_region(data: bytes, box: BoundingBox, padding: float) -> CroppedRegion:
    """Pad, clamp and crop in one step, keeping the box that produced the crop."""
    padded = pad_box(box, padding)
    if is_degenerate(padded):
        raise ValueError(f"Bounding box {box.model_dump()} is empty after clamping")
    cropped = crop_image(data, padded)
    return CroppedRegion(image=SourceImage.from_bytes(cropped), bounding_box=padded)


def _clamp_int(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))
