"""Downloads remote images so they can be decoded, cropped, or sent inline."""

import logging
from urllib.parse import urlparse

import httpx

from ..errors import ImageFetchFailed
from ..models import SourceImage


logger = logging.getLogger(__name__)


class ImageFetcher:
    """Resolves a SourceImage to raw bytes, downloading URL images on demand."""

    def __init__(
        self,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def read(self, image: SourceImage) -> bytes:
        """Return the encoded image bytes, downloading if only a URL is known."""
        if image.data is not None:
            return image.data
        if image.url.startswith("data:"):
            try:
                return SourceImage.from_data_url(image.url).data
            except (ValueError, OSError) as exc:
                raise ImageFetchFailed(
                    f"Could not decode inline image: {exc}",
                    call="image_fetcher.read",
                ) from exc
        return await self._download(image.url)

    async def load(self, url: str) -> SourceImage:
        """Download a URL and return a fully decoded SourceImage."""
        data = await self._download(url)
        try:
            return SourceImage.from_bytes(data, url=url)
        except ValueError as exc:
            raise ImageFetchFailed(str(exc), call="image_fetcher.load") from exc

    async def _download(self, url: str) -> bytes:
        # Extract the origin for Referer header (helps with hotlink protection)
        parsed = urlparse(url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        headers = {
            "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
            "Referer": origin + "/",
        }

        try:
            response = await self.client.get(url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageFetchFailed(
                f"Could not download image {url[:100]}: {exc}",
                call="image_fetcher.download",
            ) from exc

        logger.debug("Downloaded %d bytes from %s", len(response.content), url[:100])
        return response.content

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
