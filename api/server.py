"""FastAPI server for closet uploads.

Receives one clothing photo per request, either as:
- image_url: URL of the photo
- image_base64: Base64-encoded photo (data URL or raw base64)

and returns the garments extracted from it. Nothing is persisted here;
the caller stores the returned records.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, model_validator

from closet_ingest.config import PipelineConfig
from closet_ingest.logging_config import configure_logging
from closet_ingest.models import PipelineResult
from closet_ingest.pipeline import ClosetIngestionPipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup; close the pipeline's clients on shutdown."""
    pipeline = get_pipeline()
    configure_logging(pipeline.config.log_level)
    yield
    await pipeline.close()


app = FastAPI(
    title="Closet Ingestion API",
    description="Turns a clothing photo into closet-ready garment records",
    version="1.0.0",
    lifespan=lifespan,
)

# Enable CORS for the closet web app
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class UploadRequest(BaseModel):
    """Request body for a closet upload."""
    image_url: str | None = None
    image_base64: str | None = None

    @model_validator(mode="after")
    def _require_image(self) -> "UploadRequest":
        if not self.image_url and not self.image_base64:
            raise ValueError("Provide either image_url or image_base64")
        return self


# Initialize pipeline (will be done on first request)
_pipeline: ClosetIngestionPipeline | None = None


def get_pipeline() -> ClosetIngestionPipeline:
    """Get or create the pipeline instance."""
    global _pipeline
    if _pipeline is None:
        config = PipelineConfig()  # Loads from .env automatically via pydantic-settings
        _pipeline = ClosetIngestionPipeline(config)
    return _pipeline


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Closet Ingestion API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Detailed health check."""
    pipeline = get_pipeline()
    return {
        "status": "ok",
        "vision_configured": bool(pipeline.config.vision.endpoint),
        "background_removal_configured": bool(pipeline.config.background_removal.api_key),
    }


@app.post("/api/closet/upload", response_model=PipelineResult)
async def upload_to_closet(request: UploadRequest):
    """Extract closet garments from one photo.

    Args:
        request: Contains the photo as a URL or base64 data

    Returns:
        PipelineResult; ``success`` is False when nothing could be extracted
    """
    pipeline = get_pipeline()

    if request.image_base64:
        try:
            return await pipeline.process_base64(request.image_base64)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    return await pipeline.process_url(request.image_url)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
