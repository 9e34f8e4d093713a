"""
Repositorio de auditoria de sincronizacion.

Maneja las tablas append-only sync_logs y sync_failures y las metricas
por corrida (sync_run_metrics), de donde sale el watermark del change feed.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.infrastructure.database.models import (
    SyncFailureModel,
    SyncLogModel,
    SyncRunMetricModel,
)
from boardsync.shared.constants.sync_constants import MAX_ERROR_MESSAGE_LENGTH, RunStatus
from boardsync.shared.utils.datetime_utils import ensure_utc, utc_now


class SyncAuditRepository:
    """Escrituras de auditoria; cada una hace su propio commit."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append_log(
        self,
        source: str,
        message: str,
        level: str = "Info",
        details: Optional[Dict[str, Any]] = None,
        run_id: Optional[str] = None,
    ) -> None:
        self.db.add(
            SyncLogModel(
                created_at=utc_now(),
                run_id=run_id,
                source=source,
                level=level,
                message=message,
                details=details,
            )
        )
        await self.db.commit()

    async def record_failure(
        self,
        *,
        run_id: str,
        natural_key: int,
        display_key: Optional[str],
        board_id: int,
        operation: str,
        error_type: str,
        error_message: str,
        stack_trace: Optional[str] = None,
        retry_attempts: int = 0,
    ) -> None:
        """Guarda un registro fallido en la dead letter (mensaje truncado)."""
        self.db.add(
            SyncFailureModel(
                run_id=run_id,
                natural_key=natural_key,
                display_key=display_key,
                board_id=board_id,
                operation=operation,
                error_type=error_type,
                error_message=(error_message or "")[:MAX_ERROR_MESSAGE_LENGTH],
                stack_trace=stack_trace,
                retry_attempts=retry_attempts,
                resolved=False,
                created_at=utc_now(),
            )
        )
        await self.db.commit()

    async def list_unresolved_failures(self, limit: int = 100) -> List[SyncFailureModel]:
        query = (
            select(SyncFailureModel)
            .where(SyncFailureModel.resolved.is_(False))
            .order_by(SyncFailureModel.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def start_run(self, run_id: str, started_at: datetime, watermark_used: Optional[datetime]) -> None:
        self.db.add(
            SyncRunMetricModel(
                run_id=run_id,
                started_at=started_at,
                status=RunStatus.RUNNING.value,
                watermark_used=watermark_used,
            )
        )
        await self.db.commit()

    async def finish_run(
        self,
        run_id: str,
        *,
        status: RunStatus,
        created: int,
        updated: int,
        skipped: int,
        failed: int,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> None:
        await self.db.execute(
            update(SyncRunMetricModel)
            .where(SyncRunMetricModel.run_id == run_id)
            .values(
                status=status.value,
                finished_at=utc_now(),
                created=created,
                updated=updated,
                skipped=skipped,
                failed=failed,
                total=created + updated + skipped + failed,
                duration_ms=duration_ms,
                error=(error or None) and error[:MAX_ERROR_MESSAGE_LENGTH],
            )
        )
        await self.db.commit()

    async def get_last_successful_run_started_at(self) -> Optional[datetime]:
        """Inicio de la ultima corrida exitosa (base del watermark del change feed)."""
        query = (
            select(SyncRunMetricModel.started_at)
            .where(SyncRunMetricModel.status == RunStatus.SUCCESS.value)
            .order_by(SyncRunMetricModel.started_at.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        value = result.scalar_one_or_none()
        return ensure_utc(value) if value else None

    async def get_recent_runs(self, limit: int = 20) -> List[SyncRunMetricModel]:
        query = (
            select(SyncRunMetricModel)
            .order_by(SyncRunMetricModel.started_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
