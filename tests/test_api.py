"""API endpoint tests using FastAPI TestClient."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient

from api.server import app
from closet_ingest.models import PipelineError, PipelineResult, PipelineStage, ScenarioType


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.fixture
    def client(self):
        return TestClient(app)

    def test_root_endpoint(self, client):
        """Root endpoint returns OK status."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, client, config):
        """Health endpoint reports which services are configured."""
        with patch('api.server.get_pipeline') as mock_pipeline:
            mock_pipeline.return_value = MagicMock(config=config)
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["background_removal_configured"] is True


class TestUploadEndpoint:
    """Tests for the closet upload endpoint."""

    @pytest.fixture
    def client(self):
        return TestClient(app)

    @pytest.fixture
    def mock_pipeline(self):
        result = PipelineResult(success=True, scenario=ScenarioType.SINGLE_ITEM, items=[])
        pipeline = MagicMock()
        pipeline.process_url = AsyncMock(return_value=result)
        pipeline.process_base64 = AsyncMock(return_value=result)
        with patch('api.server.get_pipeline', return_value=pipeline):
            yield pipeline

    def test_upload_requires_an_image(self, client):
        """Request without image_url or image_base64 fails validation."""
        response = client.post("/api/closet/upload", json={})

        assert response.status_code == 422

    def test_upload_by_url(self, client, mock_pipeline):
        response = client.post("/api/closet/upload", json={
            "image_url": "https://images.example.com/outfit.jpg",
        })

        assert response.status_code == 200
        mock_pipeline.process_url.assert_awaited_once_with("https://images.example.com/outfit.jpg")
        data = response.json()
        assert data["success"] is True
        assert data["scenario"] == "single-item"
        assert data["items_added"] == 0

    def test_upload_by_base64(self, client, mock_pipeline, png_data_url):
        response = client.post("/api/closet/upload", json={"image_base64": png_data_url})

        assert response.status_code == 200
        mock_pipeline.process_base64.assert_awaited_once_with(png_data_url)
        mock_pipeline.process_url.assert_not_awaited()

    def test_undecodable_base64_is_bad_request(self, client, mock_pipeline):
        mock_pipeline.process_base64.side_effect = ValueError("Invalid base64 image data")

        response = client.post("/api/closet/upload", json={"image_base64": "%%%"})

        assert response.status_code == 400
        assert "base64" in response.json()["detail"]


class TestAPIResponseFormat:
    """Tests for API response format consistency."""

    @pytest.fixture
    def client(self):
        return TestClient(app)

    def test_failure_response_carries_errors(self, client):
        """A failed ingestion is still a 200 with error detail."""
        result = PipelineResult(
            success=False,
            scenario=ScenarioType.MULTI_ITEM,
            errors=[PipelineError(
                stage=PipelineStage.BACKGROUND_REMOVAL,
                call="background_removal.remove_background",
                error_type="BackgroundRemovalFailed",
                message="BiRefNet API error: 503",
            )],
            fallback_used=True,
        )
        with patch('api.server.get_pipeline') as mock_pipeline:
            mock_instance = MagicMock()
            mock_instance.process_url = AsyncMock(return_value=result)
            mock_pipeline.return_value = mock_instance

            response = client.post("/api/closet/upload", json={
                "image_url": "https://images.example.com/outfit.jpg",
            })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["items"] == []
        assert data["fallback_used"] is True
        assert data["errors"][0]["stage"] == "background_removal"
        assert data["errors"][0]["call"] == "background_removal.remove_background"


class TestLifespan:
    """Startup and shutdown hooks."""

    def test_shutdown_closes_pipeline(self, config):
        pipeline = MagicMock(config=config, close=AsyncMock())
        with patch('api.server.get_pipeline', return_value=pipeline), \
                patch('api.server.configure_logging') as mock_configure:
            with TestClient(app) as client:
                assert client.get("/").status_code == 200
                mock_configure.assert_called_once_with(config.log_level)
                pipeline.close.assert_not_awaited()

        pipeline.close.assert_awaited_once()
