"""
Dependencias para inyección de repositorios.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.infrastructure.database.session import get_db
from boardsync.infrastructure.repositories.sync_audit_repository import SyncAuditRepository


async def get_sync_audit_repository(
    session: AsyncSession = Depends(get_db)
) -> SyncAuditRepository:
    """
    Dependencia para obtener el repositorio de auditoria de corridas.

    Args:
        session: Sesión de base de datos

    Returns:
        SyncAuditRepository: Instancia del repositorio
    """
    return SyncAuditRepository(session)
