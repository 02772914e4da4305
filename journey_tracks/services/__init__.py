"""Application services built on top of the parsers, geometry and storage layers."""

from .aggregate_service import JourneyAggregateRecalculator, summarize_activities
from .edit_service import ActivityEditService, EditServiceConfig
from .ingestion_service import (
    IngestionJob,
    IngestionResult,
    IngestionService,
    IngestionServiceConfig,
    UploadRequest,
)

__all__ = [
    "ActivityEditService",
    "EditServiceConfig",
    "IngestionJob",
    "IngestionResult",
    "IngestionService",
    "IngestionServiceConfig",
    "JourneyAggregateRecalculator",
    "UploadRequest",
    "summarize_activities",
]
