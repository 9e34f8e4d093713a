"""
Resolver: encuentra (o establece) el mapeo de un registro origen.

Estrategia, cortando en el primer acierto:
1. Mapeo por (display key, board).
2. Mapeo por natural key sola (legacy). Si su display key falta o difiere,
   se consulta el board por el item que lleva la display key: id distinto
   reapunta el mapeo; mismo id o sin resultado completa la display key.
   Un error remoto en este paso se loguea y se tolera.
3. Sin mapeo y con display key: se busca el item en el board; si existe se
   persiste un mapeo nuevo hacia el (watermark/checksum vacios para que el
   planner lo actualice).
4. Si nada aplica el registro es nuevo.

Los pasos 2 y 3 escriben como efecto secundario; son idempotentes ante
corridas concurrentes (un conflicto de clave unica es Race, no error).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from loguru import logger

from boardsync.application.services.transient_retry import run_with_transient_retry
from boardsync.domain.entities.outcomes import FailureKind, Outcome
from boardsync.domain.entities.records import MappingRecord, SourceRecord
from boardsync.infrastructure.external.board.board_client import BoardApiError, BoardClient
from boardsync.infrastructure.repositories.mapping_repository import MappingRepository


@dataclass(frozen=True)
class ResolveResult:
    mapping: Optional[MappingRecord]
    outcome: Outcome
    healed: bool = False


class Resolver:

    def __init__(
        self,
        mappings: MappingRepository,
        board: BoardClient,
        display_key_column_id: str,
        retry_delay_seconds: float = 0.1,
    ):
        self.mappings = mappings
        self.board = board
        self.display_key_column_id = display_key_column_id
        self.retry_delay_seconds = retry_delay_seconds

    async def _find_remote(self, scope: int, display_key: str) -> Optional[int]:
        return await run_with_transient_retry(
            lambda: self.board.find_item_id_by_column_value(
                scope, self.display_key_column_id, display_key
            ),
            f"busqueda de item por display key '{display_key}'",
            self.retry_delay_seconds,
        )

    async def resolve(self, record: SourceRecord, scope: int) -> ResolveResult:
        display_key = (record.display_key or "").strip()

        # 1. display key + board
        if display_key:
            mapping = await self.mappings.get_by_display_key(display_key, scope)
            if mapping is not None:
                return ResolveResult(mapping, Outcome.ok())

        # 2. natural key (legacy)
        mapping = await self.mappings.get_by_natural_key(record.natural_key)
        if mapping is not None:
            if display_key and mapping.display_key != display_key:
                return await self._heal_legacy(mapping, display_key, scope)
            return ResolveResult(mapping, Outcome.ok())

        # 3. item creado fuera del servicio
        if display_key:
            return await self._adopt_remote(record, display_key, scope)

        # 4. registro nuevo
        return ResolveResult(None, Outcome.ok())

    async def _heal_legacy(self, mapping: MappingRecord, display_key: str, scope: int) -> ResolveResult:
        try:
            remote_id = await self._find_remote(scope, display_key)
        except (BoardApiError, httpx.HTTPError) as e:
            logger.warning(
                f"No se pudo reconciliar display key '{display_key}' del mapeo {mapping.id} "
                f"(natural_key={mapping.natural_key}): {e}. Se usa el mapeo existente"
            )
            return ResolveResult(mapping, Outcome.ok())

        if remote_id is not None and remote_id != mapping.remote_item_id:
            logger.info(
                f"Mapeo {mapping.id} reapuntado: item {mapping.remote_item_id} -> {remote_id} "
                f"(display_key='{display_key}')"
            )
            healed = await self.mappings.update_remote_binding(
                mapping.id, remote_item_id=remote_id, display_key=display_key
            )
        else:
            logger.info(f"Display key '{display_key}' completada en mapeo {mapping.id}")
            healed = await self.mappings.update_remote_binding(mapping.id, display_key=display_key)

        return ResolveResult(healed or mapping, Outcome.ok(), healed=True)

    async def _adopt_remote(self, record: SourceRecord, display_key: str, scope: int) -> ResolveResult:
        try:
            remote_id = await self._find_remote(scope, display_key)
        except (BoardApiError, httpx.HTTPError) as e:
            # Sin saber si el item existe no se puede crear: se reintenta en la proxima pasada
            logger.error(f"Busqueda remota fallida para display key '{display_key}': {e}")
            return ResolveResult(None, Outcome.failure(FailureKind.REMOTE_LOOKUP, str(e)))

        if remote_id is None:
            return ResolveResult(None, Outcome.ok())

        outcome = await self.mappings.insert(
            natural_key=record.natural_key,
            display_key=display_key,
            scope=scope,
            remote_item_id=remote_id,
            version_watermark="",
            checksum="",
        )
        mapping = await self.mappings.get_by_natural_key(record.natural_key)
        if mapping is None:
            return ResolveResult(
                None,
                Outcome.failure(FailureKind.PERSISTENCE, "Mapeo no encontrado tras insert"),
            )
        logger.info(
            f"Item existente {remote_id} adoptado para natural_key={record.natural_key} "
            f"(display_key='{display_key}')"
        )
        return ResolveResult(mapping, outcome, healed=True)
