"""In-process stand-ins for the external model services."""

import asyncio
import hashlib
import io
import json

import httpx
from PIL import Image

from closet_ingest.errors import BackgroundRemovalFailed
from closet_ingest.models import CleanedGarmentImage, SourceImage
from closet_ingest.services import ImageFetcher, VisionClassifierClient
from closet_ingest.services.background_removal import GENERAL, RemovalOptions


def make_png(width: int = 100, height: int = 80, color=(200, 30, 30)) -> bytes:
    """Solid-color PNG with a darker stripe so crops differ by position."""
    img = Image.new("RGB", (width, height), color)
    for x in range(width // 4, width // 2):
        for y in range(height):
            img.putpixel((x, y), (20, 20, 120))
    output = io.BytesIO()
    img.save(output, format="PNG")
    return output.getvalue()


def box(x, y, width, height, name="Garment", type_="shirt", confidence=0.9) -> dict:
    """One detected-garment entry as the vision model returns it."""
    return {
        "name": name,
        "type": type_,
        "boundingBox": {"x": x, "y": y, "width": width, "height": height},
        "confidence": confidence,
    }


class FakeVisionTransport:
    """Answers vision queries from a table keyed by query name.

    An answer may be a dict (sent as JSON), a raw string, an exception to
    raise, or a callable taking the 1-based call number for that query.
    """

    def __init__(self, answers: dict | None = None, delays: dict | None = None):
        self.answers = dict(answers or {})
        self.delays = dict(delays or {})
        self.calls: list[str] = []

    def count(self, name: str) -> int:
        return self.calls.count(name)

    async def complete(self, name, instructions, image_bytes, media_type) -> str:
        self.calls.append(name)
        if name in self.delays:
            await asyncio.sleep(self.delays[name])

        if name not in self.answers:
            raise RuntimeError(f"No fake answer for {name}")
        answer = self.answers[name]
        if callable(answer):
            answer = answer(self.count(name))
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, str):
            return answer
        return json.dumps(answer)


def fake_vision_client(config, answers=None, delays=None, fetcher=None) -> VisionClassifierClient:
    """Real vision client wired to a FakeVisionTransport."""
    return VisionClassifierClient(
        config.vision,
        transport=FakeVisionTransport(answers, delays),
        fetcher=fetcher or FakeImageFetcher(),
    )


class FakeBackgroundRemover:
    """Returns the input image as the "cleaned" one, deterministically.

    ``fail`` makes every call raise BackgroundRemovalFailed.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, RemovalOptions]] = []

    async def remove_background(
        self,
        image: SourceImage,
        options: RemovalOptions = GENERAL,
    ) -> CleanedGarmentImage:
        self.calls.append((image.reference, options))
        if self.fail:
            raise BackgroundRemovalFailed(
                "matting service unavailable",
                call="background_removal.remove_background",
            )
        return CleanedGarmentImage(
            image_url=image.reference,
            model_used=options.model.value,
            processing_time_ms=0,
        )

    async def close(self):
        pass


class FakeImageFetcher(ImageFetcher):
    """ImageFetcher whose downloads are served from memory.

    Any URL not in ``images`` gets a PNG derived from the URL, so distinct
    URLs decode to distinct images.
    """

    def __init__(self, images: dict[str, bytes] | None = None, fail: bool = False):
        self.images = dict(images or {})
        self.fail = fail
        super().__init__(transport=httpx.MockTransport(self._handle))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(503)
        url = str(request.url)
        if url in self.images:
            return httpx.Response(200, content=self.images[url])
        shade = hashlib.sha256(url.encode()).digest()
        return httpx.Response(200, content=make_png(64, 64, (shade[0], shade[1], shade[2])))
