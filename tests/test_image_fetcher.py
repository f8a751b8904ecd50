"""Unit tests for ImageFetcher - byte resolution for in-memory, inline and remote images."""

import base64

import pytest

from closet_ingest.errors import ImageFetchFailed
from closet_ingest.models import PipelineStage, SourceImage
from fakes import FakeImageFetcher, make_png


class TestRead:
    """Tests for resolving a SourceImage to bytes."""

    @pytest.mark.asyncio
    async def test_in_memory_bytes_are_returned_as_is(self, source_image, png_bytes):
        fetcher = FakeImageFetcher(fail=True)

        assert await fetcher.read(source_image) == png_bytes

    @pytest.mark.asyncio
    async def test_data_url_is_decoded_without_download(self, png_data_url, png_bytes):
        fetcher = FakeImageFetcher(fail=True)

        assert await fetcher.read(SourceImage.from_url(png_data_url)) == png_bytes

    @pytest.mark.asyncio
    async def test_undecodable_data_url_raises_fetch_error(self):
        """An inline payload that is not an image is a fetch failure, not a crash."""
        fetcher = FakeImageFetcher()
        image = SourceImage.from_url("data:image/png;base64," + base64.b64encode(b"not a png").decode())

        with pytest.raises(ImageFetchFailed) as exc_info:
            await fetcher.read(image)

        assert exc_info.value.call == "image_fetcher.read"
        assert exc_info.value.stage == PipelineStage.IMAGE_FETCH

    @pytest.mark.asyncio
    async def test_invalid_base64_in_data_url_raises_fetch_error(self):
        fetcher = FakeImageFetcher()

        with pytest.raises(ImageFetchFailed):
            await fetcher.read(SourceImage.from_url("data:image/png;base64,%%%"))

    @pytest.mark.asyncio
    async def test_remote_url_is_downloaded(self):
        url = "https://images.example.com/coat.png"
        fetcher = FakeImageFetcher(images={url: b"remote-bytes"})

        assert await fetcher.read(SourceImage.from_url(url)) == b"remote-bytes"

    @pytest.mark.asyncio
    async def test_download_error_raises_fetch_error(self):
        fetcher = FakeImageFetcher(fail=True)

        with pytest.raises(ImageFetchFailed) as exc_info:
            await fetcher.read(SourceImage.from_url("https://images.example.com/gone.png"))

        assert exc_info.value.call == "image_fetcher.download"


class TestLoad:
    """Tests for downloading and decoding a URL in one step."""

    @pytest.mark.asyncio
    async def test_load_decodes_dimensions(self):
        url = "https://images.example.com/wide.png"
        fetcher = FakeImageFetcher(images={url: make_png(120, 40)})

        image = await fetcher.load(url)

        assert image.url == url
        assert (image.width, image.height) == (120, 40)
        assert image.media_type == "image/png"

    @pytest.mark.asyncio
    async def test_load_of_non_image_raises_fetch_error(self):
        url = "https://images.example.com/page.html"
        fetcher = FakeImageFetcher(images={url: b"<html></html>"})

        with pytest.raises(ImageFetchFailed) as exc_info:
            await fetcher.load(url)

        assert exc_info.value.call == "image_fetcher.load"
