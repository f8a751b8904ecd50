"""Source image model shared by every pipeline stage."""

import base64
import binascii
import io

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict, model_validator


_FORMAT_MEDIA_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def sniff_media_type(data: bytes, default: str = "image/png") -> str:
    """Detect the image format from magic bytes."""
    if data[:3] == b'\xff\xd8\xff':
        return "image/jpeg"
    if data[:8] == b'\x89PNG\r\n\x1a\n':
        return "image/png"
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return "image/webp"
    if data[:6] in (b'GIF87a', b'GIF89a'):
        return "image/gif"
    return default


class SourceImage(BaseModel):
    """An addressable image: a remote URL, an in-memory buffer, or both.

    Immutable once created. ``width``/``height`` hold the decoded pixel
    dimensions when known.
    """

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    data: bytes | None = None
    media_type: str = "image/png"
    width: int | None = None
    height: int | None = None

    @model_validator(mode="after")
    def _require_address(self) -> "SourceImage":
        if self.url is None and self.data is None:
            raise ValueError("SourceImage needs either a url or in-memory data")
        return self

    @classmethod
    def from_bytes(cls, data: bytes, url: str | None = None) -> "SourceImage":
        """Decode dimensions and format from raw image bytes."""
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                media_type = _FORMAT_MEDIA_TYPES.get(img.format or "", sniff_media_type(data))
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"Could not decode image data: {exc}") from exc
        return cls(url=url, data=data, media_type=media_type, width=width, height=height)

    @classmethod
    def from_url(
        cls,
        url: str,
        width: int | None = None,
        height: int | None = None,
    ) -> "SourceImage":
        return cls(url=url, width=width, height=height)

    @classmethod
    def from_data_url(cls, value: str) -> "SourceImage":
        """Decode a base64 data URL (or raw base64) into an in-memory image."""
        if value.startswith("data:"):
            # Remove data URL prefix (e.g., "data:image/png;base64,")
            _, encoded = value.split(",", 1)
        else:
            encoded = value
        try:
            raw_bytes = base64.b64decode(encoded, validate=True)
        except (ValueError, binascii.Error) as exc:
            raise ValueError("Invalid base64 image data") from exc
        return cls.from_bytes(raw_bytes)

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def reference(self) -> str:
        """Address handed to remote model services."""
        if self.url is not None:
            return self.url
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"

    def describe(self) -> str:
        """Short, log-safe identifier (never the full data URI)."""
        if self.url is not None and not self.url.startswith("data:"):
            return self.url[:100]
        size = len(self.data) if self.data is not None else 0
        return f"<{self.media_type} buffer, {size} bytes>"
