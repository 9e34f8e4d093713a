"""
Casos de uso de reconciliacion origen -> board.

Una pasada:
- toma el lock de corrida (si esta ocupado no corre)
- arma el lote (allow-list o change feed + cutoff + enfriamiento + max items)
- procesa los registros de a uno: resolver -> planner -> columnas ->
  guardrail -> escritura remota -> mapeo
- audita cada resultado, registra fallas en la dead letter y guarda metricas

Un registro fallido nunca detiene el lote.
"""
from __future__ import annotations

import asyncio
import socket
import time
import traceback
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.application.dto.sync_dto import RecordOutcomeDTO, SyncRunSummaryDTO
from boardsync.application.services.board_writer import GuardedBoardWriter, WriteBlocked
from boardsync.application.services.column_values import (
    ColumnConfig,
    ColumnValuesBuilder,
    build_item_name,
    is_test_compatible,
)
from boardsync.application.services.guardrail import Guardrail, GuardrailDecision
from boardsync.application.services.resolver import Resolver
from boardsync.application.services.schema_validator import SchemaValidator
from boardsync.application.services.upsert_planner import PlanKind, UpsertPlan, plan
from boardsync.application.use_cases.hearing_sync_use_cases import HearingSyncUseCases
from boardsync.application.use_cases.sync_options import SyncOptions
from boardsync.core.config import settings
from boardsync.domain.entities.records import MappingRecord, SourceRecord
from boardsync.domain.repositories.source_repository import ISourceRepository
from boardsync.infrastructure.external.board.board_client import BoardClient
from boardsync.infrastructure.external.board.metadata_provider import BoardMetadataProvider
from boardsync.infrastructure.repositories.mapping_repository import MappingRepository
from boardsync.infrastructure.repositories.run_lock_repository import RunLockRepository
from boardsync.infrastructure.repositories.source_repository import SqlSourceRepository
from boardsync.infrastructure.repositories.sync_audit_repository import SyncAuditRepository
from boardsync.shared.constants.sync_constants import (
    AUDIT_SOURCE_RECONCILIATION,
    RUN_LOCK_NAME,
    RunStatus,
    SyncAction,
)
from boardsync.shared.exceptions.reconciliation import (
    CriticalFieldValidationError,
    RunLockUnavailableError,
    SchemaMetadataUnavailableError,
)
from boardsync.shared.utils.audit_logger import SyncAuditLogger
from boardsync.shared.utils.date_utils import cooling_period_elapsed, is_after_cutoff
from boardsync.shared.utils.datetime_utils import utc_now

FAILED_ACTIONS = {
    SyncAction.FAILED_CREATE,
    SyncAction.FAILED_UPDATE,
    SyncAction.FAILED_VALIDATION,
}

_BLOCKED_ACTIONS = {
    GuardrailDecision.SUPPRESSED: SyncAction.SKIPPED_DUPLICATE_WRITE,
    GuardrailDecision.RATE_LIMITED: SyncAction.SKIPPED_RATE_LIMITED,
}


def build_write_guardrail(options: SyncOptions) -> Guardrail:
    """Guardrail de escrituras: dedup, tope de por vida del proceso y tope por minuto."""
    return Guardrail(
        dedup_window=timedelta(seconds=options.write_dedup_window_seconds),
        max_lifetime=options.write_max_lifetime,
        max_per_window=options.write_max_per_minute,
        rate_window=timedelta(minutes=1),
    )


class RecordFailed(Exception):
    """Falla de un registro ya clasificada (accion + operacion)."""

    def __init__(self, action: SyncAction, operation: str, cause: BaseException):
        self.action = action
        self.operation = operation
        self.cause = cause
        super().__init__(str(cause))


class ReconciliationUseCases:
    """
    Orquestador de la pasada de reconciliacion.

    Recibe la sesion de base de datos y el cliente del board; arma el resto
    de las dependencias (repositorios, resolver, validador, builder).
    """

    def __init__(
        self,
        db: AsyncSession,
        board: BoardClient,
        metadata: BoardMetadataProvider,
        options: Optional[SyncOptions] = None,
        source: Optional[ISourceRepository] = None,
        alerts=None,
        write_guardrail: Optional[Guardrail] = None,
    ):
        self.db = db
        self.board = board
        self.options = options or SyncOptions.from_settings(settings)
        # El worker comparte un guardrail por proceso; sin el, vale para esta instancia
        if write_guardrail is None:
            write_guardrail = build_write_guardrail(self.options)
        self.write_guardrail = write_guardrail
        self.source = source or SqlSourceRepository(db)
        self.alerts = alerts

        self.mappings = MappingRepository(db)
        self.audit = SyncAuditRepository(db)
        self.locks = RunLockRepository(db)
        self.validator = SchemaValidator(metadata)
        self.columns = ColumnValuesBuilder(ColumnConfig.from_settings(settings), self.validator)
        self.resolver = Resolver(
            self.mappings,
            board,
            settings.DISPLAY_KEY_COLUMN_ID,
            self.options.retry_delay_seconds,
        )

    # ------------------------------------------------------------------
    # Pasada completa
    # ------------------------------------------------------------------

    async def run_pass(self, cancel_event: Optional[asyncio.Event] = None) -> SyncRunSummaryDTO:
        """
        Ejecuta una pasada completa.

        Raises:
            RunLockUnavailableError: otra corrida tiene el lock.
        """
        opts = self.options
        run_id = uuid.uuid4().hex
        owner = f"{socket.gethostname()}:{run_id[:8]}"

        if not await self.locks.acquire(RUN_LOCK_NAME, owner, opts.run_lock_ttl_minutes):
            holder = await self.locks.get_holder(RUN_LOCK_NAME)
            logger.warning(f"Corrida omitida: lock '{RUN_LOCK_NAME}' ocupado por {holder}")
            raise RunLockUnavailableError(RUN_LOCK_NAME, holder)

        started_at = utc_now()
        t0 = time.monotonic()
        summary = SyncRunSummaryDTO(
            run_id=run_id,
            status=RunStatus.RUNNING.value,
            started_at=started_at,
            dry_run=opts.dry_run,
            test_mode=opts.test_mode,
        )
        error: Optional[str] = None

        try:
            watermark = await self._compute_watermark(started_at)
            summary.watermark_used = watermark
            await self.audit.start_run(run_id, started_at, watermark)
            SyncAuditLogger.start_run(
                run_id,
                board_id=opts.board_id,
                dry_run=opts.dry_run,
                test_mode=opts.test_mode,
                since=watermark,
            )
            logger.info(
                f"Iniciando reconciliacion {run_id[:8]} board={opts.board_id} "
                f"dry_run={opts.dry_run} test_mode={opts.test_mode} desde={watermark}"
            )

            records = await self._build_batch(watermark)
            writer = GuardedBoardWriter(self.write_guardrail, opts.retry_delay_seconds)

            status = RunStatus.SUCCESS
            for record in records:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning(f"Corrida {run_id[:8]} cancelada antes de natural_key={record.natural_key}")
                    status = RunStatus.CANCELLED
                    break
                outcome = await self._process_record(run_id, record, writer)
                self._count(summary, outcome)

            if opts.hearings_enabled and status == RunStatus.SUCCESS:
                hearings = HearingSyncUseCases(
                    self.db, self.board, self.validator, self.source, writer, opts
                )
                summary.hearings = await hearings.run(opts.board_id, run_id, cancel_event)

            summary.status = status.value
        except Exception as e:
            await self.db.rollback()
            summary.status = RunStatus.ERROR.value
            error = f"{type(e).__name__}: {e}"
            logger.exception(f"Corrida {run_id[:8]} abortada: {error}")
            raise
        finally:
            summary.finished_at = utc_now()
            summary.duration_ms = int((time.monotonic() - t0) * 1000)
            await self._finish(summary, error)
            await self.locks.release(RUN_LOCK_NAME, owner)

        return summary

    async def _finish(self, summary: SyncRunSummaryDTO, error: Optional[str]) -> None:
        counters = {
            "created": summary.created,
            "updated": summary.updated,
            "skipped": summary.skipped,
            "failed": summary.failed,
        }
        await self.audit.finish_run(
            summary.run_id,
            status=RunStatus(summary.status),
            duration_ms=summary.duration_ms,
            error=error,
            **counters,
        )
        await self.audit.append_log(
            AUDIT_SOURCE_RECONCILIATION,
            f"Corrida {summary.status}: {counters}",
            level="Error" if error else "Info",
            details={
                **counters,
                "status": summary.status,
                "duration_ms": summary.duration_ms,
                "dry_run": summary.dry_run,
                "test_mode": summary.test_mode,
                "hearings": summary.hearings.model_dump() if summary.hearings else None,
                "error": error,
            },
            run_id=summary.run_id,
        )
        SyncAuditLogger.finish_run(summary.run_id, {**counters, "status": summary.status})

        if summary.status == RunStatus.SUCCESS.value:
            logger.success(
                f"Reconciliacion {summary.run_id[:8]} completada: {counters} "
                f"en {summary.duration_ms} ms"
            )
        if self.alerts is not None and summary.failed:
            self.alerts.notify(
                "SyncFailures",
                f"runid={summary.run_id} fallaron {summary.failed} registros",
                source=AUDIT_SOURCE_RECONCILIATION,
                severity="error",
            )

    @staticmethod
    def _count(summary: SyncRunSummaryDTO, outcome: RecordOutcomeDTO) -> None:
        action = SyncAction(outcome.action)
        if action == SyncAction.CREATED:
            summary.created += 1
        elif action == SyncAction.UPDATED:
            summary.updated += 1
        elif action in FAILED_ACTIONS:
            summary.failed += 1
        else:
            summary.skipped += 1
        summary.outcomes.append(outcome)

    # ------------------------------------------------------------------
    # Lote
    # ------------------------------------------------------------------

    async def _compute_watermark(self, now: datetime) -> datetime:
        """Inicio de la ultima corrida exitosa menos el solapamiento; en la primera, now - lookback."""
        last = await self.audit.get_last_successful_run_started_at()
        if last is None:
            return now - timedelta(minutes=self.options.first_run_lookback_minutes)
        return last - timedelta(minutes=self.options.watermark_overlap_minutes)

    async def _build_batch(self, since: datetime) -> List[SourceRecord]:
        opts = self.options

        if opts.allowed_keys:
            logger.info(f"Allow-list activa: {sorted(opts.allowed_keys)}")
            keys = set(opts.allowed_keys)
        else:
            keys = set(await self.source.get_changed_keys_since(since))
            logger.info(f"Change feed: {len(keys)} registros modificados desde {since}")

            if opts.cooling_business_days > 0:
                # Registros que cumplen el enfriamiento ya no aparecen en el change feed
                lookback = since - timedelta(days=opts.cooling_business_days * 2 + 7)
                recent = await self.source.get_records_created_since(lookback)
                keys.update(r.natural_key for r in recent)

        records = await self.source.get_records_by_natural_keys(sorted(keys))

        eligible = [r for r in records if is_after_cutoff(r.created_at, opts.cutoff_date)]
        if len(eligible) != len(records):
            logger.info(
                f"Cutoff {opts.cutoff_date}: {len(records) - len(eligible)} registros ignorados"
            )

        if opts.max_items > 0 and len(eligible) > opts.max_items:
            logger.info(f"Lote limitado a {opts.max_items} de {len(eligible)} registros")
            eligible = eligible[:opts.max_items]

        return eligible

    # ------------------------------------------------------------------
    # Registro
    # ------------------------------------------------------------------

    async def _process_record(
        self,
        run_id: str,
        record: SourceRecord,
        writer: GuardedBoardWriter,
    ) -> RecordOutcomeDTO:
        scope = self.options.board_id
        item_name, _ = build_item_name(record, self.options.test_mode)
        mapping: Optional[MappingRecord] = None

        try:
            resolved = await self.resolver.resolve(record, scope)
            mapping = resolved.mapping
            if resolved.outcome.is_failure:
                raise RecordFailed(
                    SyncAction.FAILED_CREATE if mapping is None else SyncAction.FAILED_UPDATE,
                    "resolve",
                    RuntimeError(resolved.outcome.error or "resolve failure"),
                )

            action = await self._apply(record, mapping, item_name, writer)
            remote_id = action[1] if action[1] is not None else (mapping.remote_item_id if mapping else None)
            outcome = RecordOutcomeDTO(
                natural_key=record.natural_key,
                display_key=record.display_key,
                action=action[0].value,
                remote_item_id=remote_id,
                item_name=item_name,
            )
            await self._audit_outcome(run_id, outcome)
            return outcome

        except Exception as e:
            await self.db.rollback()
            failure = e if isinstance(e, RecordFailed) else self._classify(e, mapping)
            return await self._handle_failure(run_id, record, mapping, item_name, failure)

    async def _apply(
        self,
        record: SourceRecord,
        mapping: Optional[MappingRecord],
        item_name: str,
        writer: GuardedBoardWriter,
    ):
        opts = self.options

        if mapping is not None and opts.test_mode and not is_test_compatible(mapping):
            return SyncAction.SKIPPED_NON_TEST_MAPPING, None

        upsert = plan(mapping, record, item_name)
        if upsert.kind == PlanKind.SKIP:
            return SyncAction.SKIPPED_NO_CHANGE, None

        if upsert.kind == PlanKind.CREATE:
            if record.created_at and not cooling_period_elapsed(
                record.created_at, opts.cooling_business_days, utc_now()
            ):
                return SyncAction.SKIPPED_COOLING, None
            return await self._create(record, item_name, upsert, writer)

        return await self._update(record, mapping, item_name, upsert, writer)

    async def _create(self, record: SourceRecord, item_name: str, upsert: UpsertPlan, writer: GuardedBoardWriter):
        opts = self.options
        scope = opts.board_id

        try:
            values = await self.columns.build(record, scope, is_new=True)
        except CriticalFieldValidationError as e:
            raise RecordFailed(SyncAction.FAILED_VALIDATION, "build_columns", e) from e

        if opts.dry_run:
            logger.info(f"[DRY RUN] crearia '{item_name}' (natural_key={record.natural_key})")
            return SyncAction.DRY_CREATE, None

        try:
            remote_id = await writer.write(
                "create_item",
                scope,
                None,
                {"name": item_name, "values": values},
                lambda: self.board.create_item(scope, opts.group_id, item_name, values),
            )
        except WriteBlocked as e:
            return _BLOCKED_ACTIONS[e.decision], None

        inserted = await self.mappings.insert(
            natural_key=record.natural_key,
            display_key=record.display_key,
            scope=scope,
            remote_item_id=remote_id,
            version_watermark=upsert.watermark,
            checksum=item_name,
            is_test=opts.test_mode,
        )
        if inserted.is_race:
            logger.warning(
                f"natural_key={record.natural_key} ya mapeado por otra corrida; "
                f"el item {remote_id} recien creado queda sin mapeo"
            )
        logger.info(f"Item {remote_id} creado para natural_key={record.natural_key} ('{item_name}')")
        return SyncAction.CREATED, remote_id

    async def _update(
        self,
        record: SourceRecord,
        mapping: MappingRecord,
        item_name: str,
        upsert: UpsertPlan,
        writer: GuardedBoardWriter,
    ):
        opts = self.options
        scope = opts.board_id
        item_id = mapping.remote_item_id

        values = None
        if upsert.data_changed:
            try:
                values = await self.columns.build(record, scope, is_new=False)
            except CriticalFieldValidationError as e:
                raise RecordFailed(SyncAction.FAILED_VALIDATION, "build_columns", e) from e

        if opts.dry_run:
            logger.info(
                f"[DRY RUN] actualizaria item {item_id} (natural_key={record.natural_key}) "
                f"name_changed={upsert.name_changed} data_changed={upsert.data_changed}"
            )
            return SyncAction.DRY_UPDATE, None

        try:
            if upsert.name_changed:
                await writer.write(
                    "update_item_name",
                    scope,
                    item_id,
                    item_name,
                    lambda: self.board.update_item_name(scope, item_id, item_name),
                )
                await self.mappings.mark_name_applied(mapping.id, item_name)

            if upsert.data_changed:
                await writer.write(
                    "update_item_fields",
                    scope,
                    item_id,
                    values,
                    lambda: self.board.update_item_fields(scope, item_id, values),
                )
                await self.mappings.mark_data_applied(mapping.id, upsert.watermark)
        except WriteBlocked as e:
            return _BLOCKED_ACTIONS[e.decision], None

        logger.info(f"Item {item_id} actualizado para natural_key={record.natural_key}")
        return SyncAction.UPDATED, None

    # ------------------------------------------------------------------
    # Fallas y auditoria
    # ------------------------------------------------------------------

    @staticmethod
    def _classify(error: Exception, mapping: Optional[MappingRecord]) -> RecordFailed:
        operation = "create" if mapping is None else "update"
        action = SyncAction.FAILED_CREATE if mapping is None else SyncAction.FAILED_UPDATE
        if isinstance(error, CriticalFieldValidationError):
            action = SyncAction.FAILED_VALIDATION
        return RecordFailed(action, operation, error)

    async def _handle_failure(
        self,
        run_id: str,
        record: SourceRecord,
        mapping: Optional[MappingRecord],
        item_name: str,
        failure: RecordFailed,
    ) -> RecordOutcomeDTO:
        cause = failure.cause
        message = str(cause)
        if isinstance(cause, SchemaMetadataUnavailableError):
            logger.error(f"Metadata del board no disponible para natural_key={record.natural_key}: {message}")
        elif isinstance(cause, CriticalFieldValidationError):
            logger.error(f"Validacion critica fallida: {message} detalles={cause.details}")
        else:
            logger.error(f"Fallo {failure.action.value} en natural_key={record.natural_key}: {message}")

        outcome = RecordOutcomeDTO(
            natural_key=record.natural_key,
            display_key=record.display_key,
            action=failure.action.value,
            remote_item_id=mapping.remote_item_id if mapping else None,
            item_name=item_name,
            error=message,
        )
        await self.audit.record_failure(
            run_id=run_id,
            natural_key=record.natural_key,
            display_key=record.display_key,
            board_id=self.options.board_id,
            operation=failure.operation,
            error_type=type(cause).__name__,
            error_message=message,
            stack_trace="".join(traceback.format_exception(type(cause), cause, cause.__traceback__)),
        )
        await self._audit_outcome(
            run_id,
            outcome,
            extra=getattr(cause, "details", None),
        )

        if self.alerts is not None and isinstance(cause, SchemaMetadataUnavailableError):
            self.alerts.notify(
                "SchemaMetadataUnavailable",
                message,
                source=AUDIT_SOURCE_RECONCILIATION,
                severity="critical",
            )
        return outcome

    async def _audit_outcome(self, run_id: str, outcome: RecordOutcomeDTO, extra=None) -> None:
        details = outcome.model_dump()
        if extra:
            details["context"] = extra
        await self.audit.append_log(
            AUDIT_SOURCE_RECONCILIATION,
            f"{outcome.action} {outcome.natural_key}",
            level="Error" if outcome.error else "Info",
            details=details,
            run_id=run_id,
        )
        SyncAuditLogger.log_outcome(
            run_id,
            outcome.action,
            outcome.natural_key,
            display_key=outcome.display_key,
            remote_item_id=outcome.remote_item_id,
            error=outcome.error,
            details=details,
        )
