"""Typed failures raised by pipeline stages and their external clients."""

from .models.results import PipelineError, PipelineStage


class IngestionError(Exception):
    """Base class for every recoverable pipeline failure."""

    stage: PipelineStage = PipelineStage.SINGLE_ITEM

    def __init__(
        self,
        message: str,
        *,
        stage: PipelineStage | None = None,
        call: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.call = call

    def to_pipeline_error(self) -> PipelineError:
        return PipelineError(
            stage=self.stage,
            call=self.call,
            error_type=type(self).__name__,
            message=self.message,
        )


class ClassificationFailed(IngestionError):
    stage = PipelineStage.CLASSIFICATION


class ExtractionFailed(IngestionError):
    stage = PipelineStage.EXTRACTION


class SeparationFailed(IngestionError):
    """Raised only when every detected region failed (or detection itself failed)."""

    stage = PipelineStage.SEPARATION

    def __init__(
        self,
        message: str,
        *,
        failures: list[PipelineError] | None = None,
        stage: PipelineStage | None = None,
        call: str | None = None,
    ):
        super().__init__(message, stage=stage, call=call)
        self.failures = list(failures or [])


class BackgroundRemovalFailed(IngestionError):
    stage = PipelineStage.BACKGROUND_REMOVAL


class CategorizationFailed(IngestionError):
    stage = PipelineStage.CATEGORIZATION


class MalformedModelResponse(IngestionError):
    """A model answered, but not in the shape its query requires."""


class ImageFetchFailed(IngestionError):
    stage = PipelineStage.IMAGE_FETCH
