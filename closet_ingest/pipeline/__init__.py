"""Ingestion orchestration."""

from .ingestion_pipeline import ClosetIngestionPipeline, HandlerOutcome, PipelineState

__all__ = ["ClosetIngestionPipeline", "HandlerOutcome", "PipelineState"]
