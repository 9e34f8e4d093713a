"""
Configuración de base de datos.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from boardsync.infrastructure.database.models import (
    ItemMappingModel,
    HearingSnapshotModel,
    SyncLogModel,
    SyncFailureModel,
    SyncRunMetricModel,
    SyncRunLockModel,
    SourceCaseModel,
    SourceHearingModel,
)
