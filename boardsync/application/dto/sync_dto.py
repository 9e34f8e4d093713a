"""
DTOs de corridas de sincronizacion.

Se usan como resultado de los casos de uso y como respuesta de la API.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class RecordOutcomeDTO(BaseModel):
    """Resultado de procesar un registro en una corrida."""

    natural_key: int = Field(..., description="Clave natural del registro origen")
    display_key: Optional[str] = Field(None, description="Numero de caso")
    action: str = Field(..., description="created, updated, dry-create, skipped_*, failed_*")
    remote_item_id: Optional[int] = Field(None, description="Id del item en el board")
    item_name: Optional[str] = Field(None, description="Nombre de item calculado")
    error: Optional[str] = Field(None, description="Mensaje de error si fallo")


class HearingSyncSummaryDTO(BaseModel):
    """Resumen de la pasada de audiencias."""

    checked: int = Field(0, description="Items con audiencia proxima evaluados")
    updated: int = Field(0, description="Items con al menos un paso aplicado")
    skipped: int = Field(0, description="Items sin pasos")
    failed: int = Field(0, description="Items con error")
    steps_applied: int = Field(0, description="Total de pasos escritos en el board")


class SyncRunSummaryDTO(BaseModel):
    """
    Resumen de una corrida de reconciliacion.

    Los contadores siempre se reportan, aunque haya registros fallidos.
    """

    run_id: str = Field(..., description="Identificador de la corrida")
    status: str = Field(..., description="success, cancelled, error")
    started_at: datetime = Field(..., description="Inicio de la corrida (UTC)")
    finished_at: Optional[datetime] = Field(None, description="Fin de la corrida (UTC)")
    watermark_used: Optional[datetime] = Field(None, description="Desde cuando se leyo el change feed")
    dry_run: bool = Field(False, description="Corrida sin escrituras")
    test_mode: bool = Field(False, description="Corrida en modo test")
    created: int = Field(0)
    updated: int = Field(0)
    skipped: int = Field(0)
    failed: int = Field(0)
    duration_ms: int = Field(0)
    outcomes: List[RecordOutcomeDTO] = Field(default_factory=list)
    hearings: Optional[HearingSyncSummaryDTO] = Field(None, description="Resumen de audiencias")

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + self.failed


class SyncRunMetricDTO(BaseModel):
    """Metricas persistidas de una corrida (GET /sync/runs)."""

    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: str
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    duration_ms: Optional[int] = None
    watermark_used: Optional[datetime] = None
    error: Optional[str] = None

    class Config:
        from_attributes = True


class SyncFailureDTO(BaseModel):
    """Registro del dead letter (GET /sync/failures)."""

    run_id: str
    natural_key: int
    display_key: Optional[str] = None
    board_id: int
    operation: str
    error_type: str
    error_message: str
    retry_attempts: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SyncRunRequestDTO(BaseModel):
    """Parametros opcionales de una corrida manual."""

    dry_run: Optional[bool] = Field(None, description="Override de SYNC_DRY_RUN")
    max_items: Optional[int] = Field(None, ge=0, description="Override de SYNC_MAX_ITEMS_PER_RUN")
