"""
Dependencias para inyeccion de casos de uso.
"""
from fastapi import HTTPException, Request, status

from boardsync.infrastructure.scheduler.sync_worker import SyncWorker


def get_sync_worker(request: Request) -> SyncWorker:
    """
    Dependencia para obtener el worker de sincronizacion creado en el startup.

    Raises:
        HTTPException: 503 si el worker no esta inicializado.
    """
    worker = getattr(request.app.state, "sync_worker", None)
    if worker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="SyncWorker no inicializado",
        )
    return worker
