"""
Endpoints de sincronizacion con el board.
Permite lanzar una pasada manual y consultar las ultimas corridas.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from boardsync.api.v1.dependencies.repository_deps import get_sync_audit_repository
from boardsync.api.v1.dependencies.use_case_deps import get_sync_worker
from boardsync.application.dto.sync_dto import (
    SyncFailureDTO,
    SyncRunMetricDTO,
    SyncRunRequestDTO,
    SyncRunSummaryDTO,
)
from boardsync.infrastructure.repositories.sync_audit_repository import SyncAuditRepository
from boardsync.infrastructure.scheduler.sync_worker import SyncWorker


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("/run", response_model=SyncRunSummaryDTO)
async def run_sync(
    request: Optional[SyncRunRequestDTO] = None,
    worker: SyncWorker = Depends(get_sync_worker),
):
    """
    Ejecuta una pasada de reconciliacion y retorna el resumen.

    Responde 409 si otra corrida tiene el lock.
    """
    request = request or SyncRunRequestDTO()
    logger.info(f"Pasada manual solicitada: dry_run={request.dry_run} max_items={request.max_items}")
    summary = await worker.run_once(
        dry_run=request.dry_run,
        max_items=request.max_items,
        raise_errors=True,
    )
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="La corrida no produjo resumen",
        )
    return summary


@router.get("/runs", response_model=List[SyncRunMetricDTO])
async def list_runs(
    limit: int = Query(20, ge=1, le=200),
    audit: SyncAuditRepository = Depends(get_sync_audit_repository),
):
    """Ultimas corridas con sus metricas."""
    runs = await audit.get_recent_runs(limit)
    return [SyncRunMetricDTO.model_validate(r) for r in runs]


@router.get("/failures", response_model=List[SyncFailureDTO])
async def list_failures(
    limit: int = Query(100, ge=1, le=500),
    audit: SyncAuditRepository = Depends(get_sync_audit_repository),
):
    """Registros en el dead letter pendientes de resolver."""
    failures = await audit.list_unresolved_failures(limit)
    return [SyncFailureDTO.model_validate(f) for f in failures]
