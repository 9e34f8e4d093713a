"""
Repositorio de snapshots de audiencias.
Guarda el ultimo estado de audiencia aplicado a cada item del board.
"""
from typing import Any, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.domain.entities.records import HearingSnapshotRecord
from boardsync.infrastructure.database.models import HearingSnapshotModel
from boardsync.shared.utils.datetime_utils import ensure_utc, utc_now

SNAPSHOT_FIELDS = ("start_at", "meet_status", "judge_name", "city")


def _to_record(row: HearingSnapshotModel) -> HearingSnapshotRecord:
    return HearingSnapshotRecord(
        natural_key=row.natural_key,
        board_id=row.board_id,
        remote_item_id=row.remote_item_id,
        start_at=ensure_utc(row.start_at) if row.start_at else None,
        meet_status=row.meet_status,
        judge_name=row.judge_name,
        city=row.city,
    )


class HearingSnapshotRepository:
    """Gestiona la tabla hearing_snapshots."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self, natural_key: int, board_id: int) -> Optional[HearingSnapshotModel]:
        query = (
            select(HearingSnapshotModel)
            .where(
                HearingSnapshotModel.natural_key == natural_key,
                HearingSnapshotModel.board_id == board_id,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get(self, natural_key: int, board_id: int) -> Optional[HearingSnapshotRecord]:
        row = await self._get_row(natural_key, board_id)
        return _to_record(row) if row else None

    async def save_fields(
        self,
        natural_key: int,
        board_id: int,
        remote_item_id: int,
        **fields: Any,
    ) -> HearingSnapshotRecord:
        """
        Persiste solo los campos indicados (los que acaban de escribirse
        en el board). El resto del snapshot queda como estaba.
        """
        unknown = set(fields) - set(SNAPSHOT_FIELDS)
        if unknown:
            raise ValueError(f"Campos de snapshot desconocidos: {sorted(unknown)}")

        row = await self._get_row(natural_key, board_id)
        if row is None:
            row = HearingSnapshotModel(
                natural_key=natural_key,
                board_id=board_id,
                remote_item_id=remote_item_id,
            )
            self.db.add(row)

        row.remote_item_id = remote_item_id
        for name, value in fields.items():
            setattr(row, name, value)
        row.last_synced_at = utc_now()

        try:
            await self.db.commit()
        except IntegrityError:
            # Otra corrida creo el snapshot en paralelo: se reintenta sobre su fila
            await self.db.rollback()
            logger.info(f"Snapshot de audiencia creado en paralelo para natural_key={natural_key}")
            row = await self._get_row(natural_key, board_id)
            if row is None:
                raise
            for name, value in fields.items():
                setattr(row, name, value)
            row.last_synced_at = utc_now()
            await self.db.commit()

        return _to_record(row)
