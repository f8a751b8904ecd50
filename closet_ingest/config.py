"""Configuration management for the closet ingestion pipeline."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class VisionConfig(BaseModel):
    """Azure OpenAI vision model settings."""
    endpoint: str | None = None
    deployment: str | None = None
    api_key: str | None = None  # None = AzureCliCredential
    api_version: str | None = None
    timeout_seconds: float = Field(default=20.0, gt=0)
    min_scenario_confidence: float = Field(default=0.4, ge=0.0, le=1.0)


class BackgroundRemovalConfig(BaseModel):
    """BiRefNet matting service settings."""
    base_url: str = "https://fal.run"
    endpoint_path: str = "/fal-ai/birefnet/v2"
    api_key: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def endpoint_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.endpoint_path.lstrip('/')}"


class GeometryConfig(BaseModel):
    """Bounding-box padding, as a fraction of the box size per side."""
    subject_padding: float = Field(default=0.05, ge=0.0, le=1.0)
    item_padding: float = Field(default=0.10, ge=0.0, le=1.0)


class PipelineConfig(BaseSettings):
    """Main pipeline configuration."""

    # Sub-configs
    vision: VisionConfig = Field(default_factory=VisionConfig)
    background_removal: BackgroundRemovalConfig = Field(default_factory=BackgroundRemovalConfig)
    geometry: GeometryConfig = Field(default_factory=GeometryConfig)

    fetch_timeout_seconds: float = Field(default=15.0, gt=0)
    max_concurrent_items: int = Field(default=6, ge=1)
    cache_max_entries: int = Field(default=512, ge=1)
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = ""
        env_nested_delimiter = "__"
        extra = "ignore"


def load_config() -> PipelineConfig:
    """Load configuration from environment and defaults."""
    return PipelineConfig()
