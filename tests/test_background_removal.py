"""Tests for the BiRefNet background removal client using httpx.MockTransport."""

import json

import httpx
import pytest

from closet_ingest.config import BackgroundRemovalConfig
from closet_ingest.errors import BackgroundRemovalFailed, MalformedModelResponse
from closet_ingest.models import PipelineStage, SourceImage
from closet_ingest.services import BackgroundModel, BackgroundRemovalClient, ResultCache
from closet_ingest.services.background_removal import (
    GENERAL,
    HIGH_RESOLUTION,
    PORTRAIT,
    available_models,
    model_recommendations,
)


class RecordingHandler:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: httpx.Response | Exception):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def make_client(handler, cache=None) -> BackgroundRemovalClient:
    return BackgroundRemovalClient(
        BackgroundRemovalConfig(api_key="test-key"),
        cache=cache if cache is not None else ResultCache(),
        transport=httpx.MockTransport(handler),
    )


IMAGE = SourceImage.from_url("https://images.example.com/shirt.jpg")


class TestRemoveBackground:
    """Tests for request building and response mapping."""

    @pytest.mark.asyncio
    async def test_posts_selected_model_and_resolution(self):
        handler = RecordingHandler(httpx.Response(200, json={"image": {"url": "https://cdn.fal/clean.png"}}))
        client = make_client(handler)

        await client.remove_background(IMAGE, PORTRAIT)

        request = handler.requests[0]
        assert str(request.url) == "https://fal.run/fal-ai/birefnet/v2"
        assert request.headers["Authorization"] == "Key test-key"
        payload = handler.payloads[0]
        assert payload["image_url"] == IMAGE.url
        assert payload["model"] == "Portrait"
        assert payload["operating_resolution"] == "2048x2048"

    @pytest.mark.asyncio
    async def test_in_memory_image_sent_as_data_uri(self, source_image):
        handler = RecordingHandler(httpx.Response(200, json={"image": {"url": "https://cdn.fal/clean.png"}}))
        client = make_client(handler)

        await client.remove_background(source_image)

        assert handler.payloads[0]["image_url"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_maps_image_and_mask(self):
        handler = RecordingHandler(httpx.Response(200, json={
            "image": {"url": "https://cdn.fal/clean.png", "width": 512},
            "mask_image": "https://cdn.fal/mask.png",
        }))
        client = make_client(handler)

        result = await client.remove_background(IMAGE, GENERAL)

        assert result.image_url == "https://cdn.fal/clean.png"
        assert result.mask_url == "https://cdn.fal/mask.png"
        assert result.model_used == BackgroundModel.GENERAL_LIGHT.value

    @pytest.mark.asyncio
    async def test_bare_string_image_accepted(self):
        handler = RecordingHandler(httpx.Response(200, json={"image": "https://cdn.fal/clean.png"}))
        client = make_client(handler)

        result = await client.remove_background(IMAGE)

        assert result.image_url == "https://cdn.fal/clean.png"
        assert result.mask_url is None


class TestMemoization:
    """Identical (image, options) never reaches the network twice."""

    @pytest.mark.asyncio
    async def test_second_identical_call_is_cached(self):
        handler = RecordingHandler(httpx.Response(200, json={"image": {"url": "https://cdn.fal/clean.png"}}))
        client = make_client(handler)

        first = await client.remove_background(IMAGE, GENERAL)
        second = await client.remove_background(IMAGE, GENERAL)

        assert len(handler.requests) == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_different_options_are_separate_entries(self):
        handler = RecordingHandler(httpx.Response(200, json={"image": {"url": "https://cdn.fal/clean.png"}}))
        client = make_client(handler)

        await client.remove_background(IMAGE, GENERAL)
        await client.remove_background(IMAGE, HIGH_RESOLUTION)

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_clear_cache_forces_new_call(self):
        handler = RecordingHandler(httpx.Response(200, json={"image": {"url": "https://cdn.fal/clean.png"}}))
        client = make_client(handler)

        await client.remove_background(IMAGE)
        client.clear_cache()
        await client.remove_background(IMAGE)

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        handler = RecordingHandler(httpx.Response(500, text="boom"))
        client = make_client(handler)

        for _ in range(2):
            with pytest.raises(BackgroundRemovalFailed):
                await client.remove_background(IMAGE)

        assert len(handler.requests) == 2


class TestFailures:
    """Provider failures become typed errors."""

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        client = make_client(RecordingHandler(httpx.Response(503, text="overloaded")))

        with pytest.raises(BackgroundRemovalFailed) as exc_info:
            await client.remove_background(IMAGE)

        assert "503" in exc_info.value.message
        assert exc_info.value.call == "background_removal.remove_background"
        assert exc_info.value.stage == PipelineStage.BACKGROUND_REMOVAL

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = make_client(RecordingHandler(httpx.ReadTimeout("too slow")))

        with pytest.raises(BackgroundRemovalFailed, match="timed out"):
            await client.remove_background(IMAGE)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        client = make_client(RecordingHandler(httpx.ConnectError("refused")))

        with pytest.raises(BackgroundRemovalFailed):
            await client.remove_background(IMAGE)

    @pytest.mark.asyncio
    async def test_missing_image_is_malformed(self):
        client = make_client(RecordingHandler(httpx.Response(200, json={"mask_image": "x"})))

        with pytest.raises(MalformedModelResponse) as exc_info:
            await client.remove_background(IMAGE)

        assert exc_info.value.stage == PipelineStage.BACKGROUND_REMOVAL

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        client = make_client(RecordingHandler(httpx.Response(200, text="<html>")))

        with pytest.raises(MalformedModelResponse):
            await client.remove_background(IMAGE)


class TestModelCatalog:
    def test_available_models_lists_every_variant(self):
        assert set(available_models()) == set(BackgroundModel)

    def test_person_wearing_uses_portrait(self):
        assert model_recommendations()["person-wearing"] == BackgroundModel.PORTRAIT

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self):
        handler = RecordingHandler(httpx.Response(200, json={"image": {"url": "https://cdn.fal/clean.png"}}))

        async with make_client(handler) as client:
            await client.remove_background(IMAGE)
            http_client = client.client

        assert http_client.is_closed
