"""BiRefNet v2 background removal client with memoized results."""

import logging
import time
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from ..config import BackgroundRemovalConfig
from ..errors import BackgroundRemovalFailed, MalformedModelResponse
from ..models import CleanedGarmentImage, PipelineStage, SourceImage
from .cache import ResultCache, options_hash


logger = logging.getLogger(__name__)

CALL_NAME = "background_removal.remove_background"


class BackgroundModel(str, Enum):
    """Matting model variants offered by the provider."""

    GENERAL_LIGHT = "General Use (Light)"
    GENERAL_LIGHT_2K = "General Use (Light 2K)"
    GENERAL_HEAVY = "General Use (Heavy)"
    MATTING = "Matting"
    PORTRAIT = "Portrait"
    GENERAL_DYNAMIC = "General Use (Dynamic)"


class Resolution(str, Enum):
    SQUARE_1024 = "1024x1024"
    SQUARE_2048 = "2048x2048"
    SQUARE_2304 = "2304x2304"


class RemovalOptions(BaseModel):
    """Model/resolution selection. Chosen by the caller, never inferred here."""

    model_config = ConfigDict(frozen=True)

    model: BackgroundModel = BackgroundModel.GENERAL_LIGHT
    operating_resolution: Resolution = Resolution.SQUARE_2048
    refine_foreground: bool = True
    output_mask: bool = False
    output_format: str = "png"

    @property
    def digest(self) -> str:
        return options_hash(self.model_dump(mode="json"))


PORTRAIT = RemovalOptions(model=BackgroundModel.PORTRAIT)
GENERAL = RemovalOptions(model=BackgroundModel.GENERAL_LIGHT)
HIGH_RESOLUTION = RemovalOptions(
    model=BackgroundModel.GENERAL_DYNAMIC,
    operating_resolution=Resolution.SQUARE_2304,
)


def available_models() -> list[BackgroundModel]:
    return list(BackgroundModel)


def model_recommendations() -> dict[str, BackgroundModel]:
    """Which model suits which kind of photo."""
    return {
        "person-wearing": BackgroundModel.PORTRAIT,
        "flat-lay-product": BackgroundModel.GENERAL_LIGHT,
        "high-resolution": BackgroundModel.GENERAL_DYNAMIC,
        "matting-alpha": BackgroundModel.MATTING,
        "heavy-quality": BackgroundModel.GENERAL_HEAVY,
        "default": BackgroundModel.GENERAL_LIGHT,
    }


class BackgroundRemovalClient:
    """Client for the BiRefNet matting endpoint.

    Results are memoized by ``(image reference, options hash)`` in an
    injected ResultCache, so repeated calls with identical inputs never
    reach the network twice.
    """

    def __init__(
        self,
        config: BackgroundRemovalConfig,
        cache: ResultCache[CleanedGarmentImage] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.cache = cache if cache is not None else ResultCache()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.config.api_key:
                headers["Authorization"] = f"Key {self.config.api_key}"
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def remove_background(
        self,
        image: SourceImage,
        options: RemovalOptions = GENERAL,
    ) -> CleanedGarmentImage:
        """Strip the background from an image.

        Args:
            image: Image to clean; remote URLs are passed through, buffers
                are sent as data URIs
            options: Model and resolution variant

        Returns:
            CleanedGarmentImage with the provider-hosted result URL

        Raises:
            BackgroundRemovalFailed: transport error, timeout or non-2xx status
            MalformedModelResponse: response lacks the cleaned image URL
        """
        reference = image.reference
        cache_key = self.cache.make_key(reference, options.digest)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("Background removal cache hit for %s", image.describe())
            return cached

        payload = {
            "image_url": reference,
            "model": options.model.value,
            "operating_resolution": options.operating_resolution.value,
            "output_mask": options.output_mask,
            "refine_foreground": options.refine_foreground,
            "output_format": options.output_format,
            "sync_mode": False,
        }

        start_time = time.perf_counter()
        logger.info(
            "Removing background from %s with model '%s'",
            image.describe(),
            options.model.value,
        )
        try:
            response = await self.client.post(self.config.endpoint_url, json=payload)
        except httpx.TimeoutException as exc:
            raise BackgroundRemovalFailed(
                f"Background removal timed out after {self.config.timeout_seconds}s",
                call=CALL_NAME,
            ) from exc
        except httpx.HTTPError as exc:
            raise BackgroundRemovalFailed(
                f"Background removal request failed: {exc}",
                call=CALL_NAME,
            ) from exc

        if response.status_code != 200:
            raise BackgroundRemovalFailed(
                f"BiRefNet API error: {response.status_code} - {response.text[:500]}",
                call=CALL_NAME,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedModelResponse(
                "BiRefNet response is not valid JSON",
                stage=PipelineStage.BACKGROUND_REMOVAL,
                call=CALL_NAME,
            ) from exc

        result = self._parse_response(
            data,
            options,
            processing_time_ms=int((time.perf_counter() - start_time) * 1000),
        )
        logger.info("Background removal complete in %dms", result.processing_time_ms)
        return self.cache.put_if_absent(cache_key, result)

    def _parse_response(
        self,
        data: Any,
        options: RemovalOptions,
        processing_time_ms: int,
    ) -> CleanedGarmentImage:
        """Map the provider response onto CleanedGarmentImage."""
        if not isinstance(data, dict):
            raise MalformedModelResponse(
                f"Expected a JSON object from BiRefNet, got {type(data).__name__}",
                stage=PipelineStage.BACKGROUND_REMOVAL,
                call=CALL_NAME,
            )

        image_url = _asset_url(data.get("image"))
        if not image_url:
            raise MalformedModelResponse(
                f"No image URL in BiRefNet response. Response keys: {list(data.keys())}",
                stage=PipelineStage.BACKGROUND_REMOVAL,
                call=CALL_NAME,
            )

        return CleanedGarmentImage(
            image_url=image_url,
            mask_url=_asset_url(data.get("mask_image")),
            model_used=options.model.value,
            processing_time_ms=processing_time_ms,
        )

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Background removal cache cleared")

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BackgroundRemovalClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def _asset_url(value: Any) -> str | None:
    """Provider assets arrive either as ``{"url": ...}`` or a bare string."""
    if isinstance(value, dict):
        url = value.get("url")
        return url if isinstance(url, str) and url else None
    if isinstance(value, str) and value:
        return value
    return None
