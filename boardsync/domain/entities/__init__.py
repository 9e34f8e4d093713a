"""
Entidades del dominio.
"""
from boardsync.domain.entities.outcomes import FailureKind, Outcome, OutcomeKind
from boardsync.domain.entities.records import (
    SourceRecord,
    MappingRecord,
    HearingSource,
    HearingSnapshotRecord,
)

__all__ = [
    "FailureKind",
    "Outcome",
    "OutcomeKind",
    "SourceRecord",
    "MappingRecord",
    "HearingSource",
    "HearingSnapshotRecord",
]
