"""
Lock de corrida persistido en base de datos.

Evita pasadas de reconciliacion solapadas entre procesos (worker,
endpoint manual y script CLI). El lock expira solo si su duenio muere
sin liberarlo.
"""
from datetime import timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.infrastructure.database.models import SyncRunLockModel
from boardsync.shared.utils.datetime_utils import utc_now


class RunLockRepository:
    """Gestiona la tabla sync_run_locks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def acquire(self, name: str, owner: str, ttl_minutes: int) -> bool:
        """
        Intenta tomar el lock.

        Returns:
            bool: True si el lock quedo a nombre de `owner`.
        """
        now = utc_now()
        expires_at = now + timedelta(minutes=ttl_minutes)

        result = await self.db.execute(
            update(SyncRunLockModel)
            .where(
                SyncRunLockModel.name == name,
                or_(
                    SyncRunLockModel.locked_by.is_(None),
                    SyncRunLockModel.expires_at < now,
                ),
            )
            .values(locked_by=owner, locked_at=now, expires_at=expires_at)
        )
        await self.db.commit()
        if result.rowcount:
            logger.debug(f"Lock '{name}' tomado por {owner}")
            return True

        existing = await self.get_holder(name)
        if existing is not None:
            return False

        self.db.add(SyncRunLockModel(name=name, locked_by=owner, locked_at=now, expires_at=expires_at))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Lock '{name}' tomado en paralelo por otro proceso")
            return False
        logger.debug(f"Lock '{name}' creado y tomado por {owner}")
        return True

    async def release(self, name: str, owner: str) -> None:
        """Libera el lock solo si sigue a nombre de `owner`."""
        await self.db.execute(
            update(SyncRunLockModel)
            .where(SyncRunLockModel.name == name, SyncRunLockModel.locked_by == owner)
            .values(locked_by=None, locked_at=None, expires_at=None)
        )
        await self.db.commit()
        logger.debug(f"Lock '{name}' liberado por {owner}")

    async def get_holder(self, name: str) -> Optional[str]:
        """Duenio actual del lock ('' si la fila existe libre, None si no existe)."""
        result = await self.db.execute(
            select(SyncRunLockModel.locked_by).where(SyncRunLockModel.name == name)
        )
        row = result.first()
        if row is None:
            return None
        return row[0] or ""
