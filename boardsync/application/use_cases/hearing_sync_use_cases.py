"""
Casos de uso para sincronizar la audiencia mas proxima de cada caso.

Flujo por item mapeado:
1. Elegir la audiencia futura mas proxima del origen.
2. Calcular los pasos con el gate contra el ultimo snapshot aplicado.
3. Ejecutar los pasos en orden; cada campo se persiste en el snapshot
   solo despues de que su propia escritura en el board tuvo exito.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.application.dto.sync_dto import HearingSyncSummaryDTO
from boardsync.application.services.board_writer import GuardedBoardWriter, WriteBlocked
from boardsync.application.services.column_values import is_test_compatible
from boardsync.application.services.hearing_gate import (
    STEP_SET_STATUS_PREFIX,
    STEP_UPDATE_CITY,
    STEP_UPDATE_HEARING_DATE,
    STEP_UPDATE_JUDGE,
    GateDecision,
    compute_steps,
)
from boardsync.application.services.hearing_selector import pick_nearest_upcoming
from boardsync.application.services.schema_validator import SchemaValidator
from boardsync.application.use_cases.sync_options import SyncOptions
from boardsync.domain.entities.records import HearingSource, MappingRecord
from boardsync.domain.repositories.source_repository import ISourceRepository
from boardsync.infrastructure.external.board.board_client import BoardApiError, BoardClient
from boardsync.infrastructure.repositories.hearing_snapshot_repository import HearingSnapshotRepository
from boardsync.infrastructure.repositories.mapping_repository import MappingRepository
from boardsync.infrastructure.repositories.sync_audit_repository import SyncAuditRepository
from boardsync.shared.constants.sync_constants import AUDIT_SOURCE_HEARINGS
from boardsync.shared.exceptions.reconciliation import SchemaMetadataUnavailableError
from boardsync.shared.utils.datetime_utils import to_source_local, utc_now


class HearingSyncUseCases:
    """Aplica el gate de actualizacion parcial a los items del board."""

    def __init__(
        self,
        db: AsyncSession,
        board: BoardClient,
        validator: SchemaValidator,
        source: ISourceRepository,
        writer: GuardedBoardWriter,
        options: SyncOptions,
    ):
        self.db = db
        self.board = board
        self.validator = validator
        self.source = source
        self.writer = writer
        self.options = options
        self.mappings = MappingRepository(db)
        self.snapshots = HearingSnapshotRepository(db)
        self.audit = SyncAuditRepository(db)

    async def run(
        self,
        scope: int,
        run_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> HearingSyncSummaryDTO:
        summary = HearingSyncSummaryDTO()

        mappings = await self.mappings.list_by_scope(scope)
        if self.options.test_mode:
            mappings = [m for m in mappings if is_test_compatible(m)]
        if not mappings:
            logger.info(f"Audiencias: sin items mapeados en el board {scope}")
            return summary

        hearings = await self.source.get_hearings_by_natural_keys(m.natural_key for m in mappings)
        nearest = pick_nearest_upcoming(hearings, utc_now())
        logger.info(
            f"Audiencias: {len(nearest)} de {len(mappings)} items tienen audiencia proxima"
        )

        for mapping in mappings:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Audiencias: cancelacion solicitada, se detiene la pasada")
                break
            hearing = nearest.get(mapping.natural_key)
            if hearing is None:
                continue

            summary.checked += 1
            try:
                applied = await self._sync_item(scope, mapping, hearing, run_id)
            except Exception as e:
                await self.db.rollback()
                summary.failed += 1
                logger.error(
                    f"Audiencias: error en natural_key={mapping.natural_key} "
                    f"item={mapping.remote_item_id}: {e}"
                )
                await self.audit.append_log(
                    AUDIT_SOURCE_HEARINGS,
                    f"Error sincronizando audiencia de {mapping.natural_key}",
                    level="Error",
                    details={
                        "natural_key": mapping.natural_key,
                        "remote_item_id": mapping.remote_item_id,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                    run_id=run_id,
                )
                continue

            if applied:
                summary.updated += 1
                summary.steps_applied += applied
            else:
                summary.skipped += 1

        return summary

    async def _sync_item(
        self,
        scope: int,
        mapping: MappingRecord,
        hearing: HearingSource,
        run_id: Optional[str],
    ) -> int:
        previous = await self.snapshots.get(mapping.natural_key, scope)
        decision = compute_steps(hearing, previous)
        if not decision.steps:
            return 0

        if self.options.dry_run:
            logger.info(
                f"[DRY RUN] Audiencia natural_key={mapping.natural_key} item={mapping.remote_item_id}: "
                f"pasos {list(decision.steps)}"
            )
            await self._audit(mapping, decision, [], run_id, dry_run=True)
            return 0

        executed = []
        for step in decision.steps:
            if await self._execute_step(scope, mapping, hearing, decision, step):
                executed.append(step)

        await self._audit(mapping, decision, executed, run_id, dry_run=False)
        return len(executed)

    async def _execute_step(
        self,
        scope: int,
        mapping: MappingRecord,
        hearing: HearingSource,
        decision: GateDecision,
        step: str,
    ) -> bool:
        cols = self.options.hearing_columns
        item_id = mapping.remote_item_id
        values: Dict[str, Any]
        snapshot_fields: Dict[str, Any]

        if step.startswith(STEP_SET_STATUS_PREFIX):
            label = decision.status_label
            result = await self.validator.validate_critical(scope, cols.status_column_id, label)
            if not result.ok:
                logger.warning(
                    f"Label de audiencia '{label}' invalido para natural_key={mapping.natural_key}: "
                    f"{result.message}. Se omite el paso de status"
                )
                return False
            values = {cols.status_column_id: {"label": label}}
            snapshot_fields = {"meet_status": hearing.meet_status}
        elif step == STEP_UPDATE_JUDGE:
            values = {cols.judge_column_id: decision.judge}
            snapshot_fields = {"judge_name": decision.judge}
        elif step == STEP_UPDATE_CITY:
            values = {cols.city_column_id: decision.city}
            snapshot_fields = {"city": decision.city}
        elif step == STEP_UPDATE_HEARING_DATE:
            local = to_source_local(hearing.start_at)
            values = {cols.date_column_id: {"date": local.date().isoformat()}}
            if cols.hour_column_id:
                values[cols.hour_column_id] = {"hour": local.hour, "minute": local.minute}
            snapshot_fields = {"start_at": hearing.start_at}
        else:
            raise ValueError(f"Paso de audiencia desconocido: {step}")

        try:
            await self.writer.write(
                step,
                scope,
                item_id,
                values,
                lambda: self.board.update_item_fields(scope, item_id, values),
            )
        except WriteBlocked:
            return False
        except (BoardApiError, httpx.HTTPError, SchemaMetadataUnavailableError) as e:
            logger.error(f"Audiencia: paso {step} fallo para item {item_id}: {e}")
            raise

        await self.snapshots.save_fields(mapping.natural_key, scope, item_id, **snapshot_fields)
        logger.debug(f"Audiencia: paso {step} aplicado en item {item_id}")
        return True

    async def _audit(
        self,
        mapping: MappingRecord,
        decision: GateDecision,
        executed: list,
        run_id: Optional[str],
        dry_run: bool,
    ) -> None:
        await self.audit.append_log(
            AUDIT_SOURCE_HEARINGS,
            f"Audiencia {mapping.natural_key}: {len(executed)}/{len(decision.steps)} pasos",
            details={
                "natural_key": mapping.natural_key,
                "remote_item_id": mapping.remote_item_id,
                "planned_steps": list(decision.steps),
                "executed_steps": executed,
                "date_allowed": decision.date_allowed,
                "dry_run": dry_run,
            },
            run_id=run_id,
        )
