"""
Worker de sincronizacion periodica (APScheduler).

Jobs:
- reconciliation: una pasada cada SYNC_INTERVAL_SECONDS (max_instances=1)
- alert_digest: digest de alertas suprimidas cada ALERT_DIGEST_INTERVAL_MINUTES
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.application.dto.sync_dto import SyncRunSummaryDTO
from boardsync.application.use_cases.alert_use_cases import AlertNotifier
from boardsync.application.use_cases.reconciliation_use_cases import (
    ReconciliationUseCases,
    build_write_guardrail,
)
from boardsync.application.use_cases.sync_options import SyncOptions
from boardsync.core.config import Settings
from boardsync.infrastructure.external.board.board_client import BoardClient
from boardsync.infrastructure.external.board.metadata_provider import BoardMetadataProvider
from boardsync.shared.exceptions.reconciliation import RunLockUnavailableError
from boardsync.shared.utils.datetime_utils import utc_now

RECONCILIATION_JOB_ID = "reconciliation"
DIGEST_JOB_ID = "alert_digest"


class SyncWorker:
    """
    Ejecuta pasadas de reconciliacion en intervalo fijo.

    El cliente del board, su cache de metadata y el guardrail de escrituras
    se comparten entre pasadas: los topes de escritura son por proceso.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], AsyncSession],
        board: BoardClient,
        alerts: Optional[AlertNotifier] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.board = board
        self.metadata = BoardMetadataProvider(board)
        self.write_guardrail = build_write_guardrail(SyncOptions.from_settings(settings))
        self.alerts = alerts
        self.cancel_event = asyncio.Event()
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.last_summary: Optional[SyncRunSummaryDTO] = None

    def start(self) -> None:
        self.cancel_event.clear()
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.add_job(
            self._scheduled_pass,
            trigger=IntervalTrigger(seconds=self.settings.SYNC_INTERVAL_SECONDS),
            id=RECONCILIATION_JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=utc_now(),
        )
        if self.alerts is not None:
            self.scheduler.add_job(
                self.alerts.flush_digest,
                trigger=IntervalTrigger(minutes=self.settings.ALERT_DIGEST_INTERVAL_MINUTES),
                id=DIGEST_JOB_ID,
                max_instances=1,
            )
        self.scheduler.start()
        logger.info(
            f"SyncWorker iniciado: intervalo {self.settings.SYNC_INTERVAL_SECONDS}s, "
            f"board {self.settings.BOARD_ID}"
        )

    async def stop(self) -> None:
        # La pasada en curso termina el registro actual y se detiene
        self.cancel_event.set()
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        logger.info("SyncWorker detenido")

    async def _scheduled_pass(self) -> None:
        logger.info(f"Heartbeat SyncWorker: iniciando pasada programada ({utc_now().isoformat()})")
        await self.run_once()

    async def run_once(
        self,
        dry_run: Optional[bool] = None,
        max_items: Optional[int] = None,
        raise_errors: bool = False,
    ) -> Optional[SyncRunSummaryDTO]:
        """
        Ejecuta una pasada con una sesion nueva.

        Con raise_errors=False (scheduler) los errores se loguean y alertan;
        con True (endpoint manual) se propagan.
        """
        options = SyncOptions.from_settings(self.settings, dry_run=dry_run, max_items=max_items)
        try:
            async with self.session_factory() as db:
                use_cases = ReconciliationUseCases(
                    db,
                    self.board,
                    self.metadata,
                    options=options,
                    alerts=self.alerts,
                    write_guardrail=self.write_guardrail,
                )
                summary = await use_cases.run_pass(self.cancel_event)
        except RunLockUnavailableError as e:
            logger.warning(f"Pasada omitida: {e.message}")
            if raise_errors:
                raise
            return None
        except Exception as e:
            logger.error(f"Pasada de reconciliacion fallida: {e}")
            if self.alerts is not None:
                self.alerts.notify(
                    "SyncRunFailed",
                    f"{type(e).__name__}: {e}",
                    source="SyncWorker",
                    severity="critical",
                )
            if raise_errors:
                raise
            return None

        self.last_summary = summary
        return summary
