from datetime import timedelta

import pytest
from sqlalchemy import update

from boardsync.infrastructure.database.models import SyncRunLockModel
from boardsync.infrastructure.repositories.run_lock_repository import RunLockRepository
from boardsync.shared.utils.datetime_utils import utc_now


@pytest.mark.asyncio
async def test_lock_is_exclusive_until_released(db_session):
    locks = RunLockRepository(db_session)

    assert await locks.get_holder("reconciliation") is None
    assert await locks.acquire("reconciliation", "host-a", ttl_minutes=30)
    assert not await locks.acquire("reconciliation", "host-b", ttl_minutes=30)
    assert await locks.get_holder("reconciliation") == "host-a"

    # Solo el duenio puede liberar
    await locks.release("reconciliation", "host-b")
    assert await locks.get_holder("reconciliation") == "host-a"

    await locks.release("reconciliation", "host-a")
    assert await locks.acquire("reconciliation", "host-b", ttl_minutes=30)


@pytest.mark.asyncio
async def test_expired_lock_can_be_taken(db_session):
    locks = RunLockRepository(db_session)
    assert await locks.acquire("reconciliation", "dead-host", ttl_minutes=30)

    await db_session.execute(
        update(SyncRunLockModel)
        .where(SyncRunLockModel.name == "reconciliation")
        .values(expires_at=utc_now() - timedelta(minutes=1))
    )
    await db_session.commit()

    assert await locks.acquire("reconciliation", "host-b", ttl_minutes=30)
    assert await locks.get_holder("reconciliation") == "host-b"
