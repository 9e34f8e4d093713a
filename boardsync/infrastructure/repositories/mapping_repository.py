"""
Implementación del repositorio de mapeos (Mapping Store).
Maneja las operaciones de base de datos para ItemMappingModel.

Cada escritura hace su propio commit (transaccion por registro): un corte a
mitad de corrida deja los registros ya confirmados bien sincronizados.
"""
from typing import List, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.domain.entities.outcomes import Outcome
from boardsync.domain.entities.records import MappingRecord
from boardsync.infrastructure.database.models import ItemMappingModel
from boardsync.shared.utils.datetime_utils import utc_now


def _to_record(row: ItemMappingModel) -> MappingRecord:
    return MappingRecord(
        id=row.id,
        natural_key=row.natural_key,
        display_key=row.display_key,
        container_scope=row.container_scope,
        remote_item_id=row.remote_item_id,
        version_watermark=row.version_watermark or "",
        checksum=row.checksum or "",
        is_test=bool(row.is_test),
        created_at=row.created_at,
        last_synced_at=row.last_synced_at,
    )


class MappingRepository:
    """Repositorio para gestionar mapeos registro origen <-> item del board."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _first(self, query) -> Optional[MappingRecord]:
        result = await self.db.execute(query.execution_options(populate_existing=True))
        row = result.scalars().first()
        return _to_record(row) if row else None

    async def get_by_id(self, mapping_id: int) -> Optional[MappingRecord]:
        return await self._first(select(ItemMappingModel).where(ItemMappingModel.id == mapping_id))

    async def get_by_display_key(self, display_key: str, scope: int) -> Optional[MappingRecord]:
        """
        Obtiene el mapeo por display key dentro del board indicado.
        """
        return await self._first(
            select(ItemMappingModel)
            .where(
                ItemMappingModel.container_scope == scope,
                ItemMappingModel.display_key == display_key,
            )
            .order_by(ItemMappingModel.id)
            .limit(1)
        )

    async def get_by_natural_key(self, natural_key: int) -> Optional[MappingRecord]:
        """
        Obtiene el mapeo por natural key (compatibilidad legacy: ignora el board).
        """
        return await self._first(
            select(ItemMappingModel).where(ItemMappingModel.natural_key == natural_key)
        )

    async def list_by_scope(self, scope: int) -> List[MappingRecord]:
        result = await self.db.execute(
            select(ItemMappingModel)
            .where(ItemMappingModel.container_scope == scope)
            .order_by(ItemMappingModel.natural_key)
        )
        return [_to_record(r) for r in result.scalars().all()]

    async def insert(
        self,
        *,
        natural_key: int,
        display_key: Optional[str],
        scope: int,
        remote_item_id: int,
        version_watermark: str,
        checksum: str,
        is_test: bool = False,
    ) -> Outcome:
        """
        Inserta un mapeo nuevo.

        Returns:
            Outcome.ok() si se inserto; Outcome.race() si otra corrida ya
            inserto la misma natural key (violacion de unicidad).
        """
        row = ItemMappingModel(
            natural_key=natural_key,
            display_key=display_key or None,
            container_scope=scope,
            remote_item_id=remote_item_id,
            version_watermark=version_watermark,
            checksum=checksum,
            is_test=is_test,
            created_at=utc_now(),
            last_synced_at=utc_now(),
        )
        self.db.add(row)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(
                f"Mapeo ya existente para natural_key={natural_key} (carrera con otra corrida); "
                f"se toma como exito"
            )
            return Outcome.race(str(e.orig))
        return Outcome.ok()

    async def _update(self, mapping_id: int, **values) -> None:
        await self.db.execute(
            update(ItemMappingModel)
            .where(ItemMappingModel.id == mapping_id)
            .values(**values)
        )
        await self.db.commit()

    async def update_remote_binding(
        self,
        mapping_id: int,
        *,
        remote_item_id: Optional[int] = None,
        display_key: Optional[str] = None,
    ) -> Optional[MappingRecord]:
        """Reapunta el item remoto y/o completa la display key."""
        values = {}
        if remote_item_id is not None:
            values["remote_item_id"] = remote_item_id
        if display_key:
            values["display_key"] = display_key
        if values:
            await self._update(mapping_id, **values)
        return await self.get_by_id(mapping_id)

    async def mark_name_applied(self, mapping_id: int, checksum: str) -> None:
        """Persiste el checksum del nombre tras escribirlo en el board."""
        await self._update(mapping_id, checksum=checksum, last_synced_at=utc_now())

    async def mark_data_applied(self, mapping_id: int, watermark: str) -> None:
        """Persiste el watermark tras escribir las columnas en el board."""
        await self._update(mapping_id, version_watermark=watermark, last_synced_at=utc_now())
