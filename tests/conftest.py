# Test fixtures and configuration
import base64
import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from closet_ingest.config import PipelineConfig
from closet_ingest.models import SourceImage
from fakes import make_png


@pytest.fixture
def png_bytes():
    """100x80 PNG image bytes."""
    return make_png()


@pytest.fixture
def source_image(png_bytes):
    """In-memory upload."""
    return SourceImage.from_bytes(png_bytes)


@pytest.fixture
def png_data_url(png_bytes):
    return f"data:image/png;base64,{base64.b64encode(png_bytes).decode()}"


@pytest.fixture
def config():
    """Pipeline config with short timeouts, ignoring any local .env."""
    return PipelineConfig(
        _env_file=None,
        vision={"timeout_seconds": 0.5},
        background_removal={"api_key": "test-key", "timeout_seconds": 1.0},
    )


@pytest.fixture
def categorization_answer():
    """A valid categorization reply."""
    return {
        "name": "Blue Oxford Shirt",
        "clothingType": "button-down oxford shirt",
        "category": "shirts",
        "attributes": {
            "color": "blue",
            "secondaryColors": ["white"],
            "material": "cotton",
            "style": "casual",
            "fit": "regular fit",
            "pattern": "solid",
            "season": ["spring", "summer"],
            "occasion": ["work"],
        },
        "confidence": 0.9,
    }
