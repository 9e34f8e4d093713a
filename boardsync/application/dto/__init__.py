"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import (
    RecordOutcomeDTO,
    HearingSyncSummaryDTO,
    SyncRunSummaryDTO,
    SyncRunMetricDTO,
    SyncFailureDTO,
    SyncRunRequestDTO,
)

__all__ = [
    "RecordOutcomeDTO",
    "HearingSyncSummaryDTO",
    "SyncRunSummaryDTO",
    "SyncRunMetricDTO",
    "SyncFailureDTO",
    "SyncRunRequestDTO",
]
