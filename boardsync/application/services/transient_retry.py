"""
Reintento unico ante errores transitorios.

Transitorio: errores de transporte/timeout de httpx, HTTP 429/5xx o codigos
de rate limit/complejidad del board, y OperationalError de base de datos
con firma de deadlock o timeout. Todo lo demas (validacion, 4xx, items
inactivos) se propaga de inmediato.
"""
import asyncio
from typing import Awaitable, Callable, TypeVar

import httpx
from loguru import logger
from sqlalchemy.exc import OperationalError

from boardsync.infrastructure.external.board.board_client import BoardApiError

T = TypeVar("T")

_DB_TRANSIENT_SIGNATURES = ("deadlock", "timeout", "timed out", "database is locked")


def is_transient_error(error: BaseException) -> bool:
    if isinstance(error, BoardApiError):
        return error.is_transient
    if isinstance(error, (httpx.TransportError, httpx.TimeoutException)):
        return True
    if isinstance(error, OperationalError):
        text = str(error).lower()
        return any(sig in text for sig in _DB_TRANSIENT_SIGNATURES)
    return False


async def run_with_transient_retry(
    operation: Callable[[], Awaitable[T]],
    description: str,
    delay_seconds: float = 0.1,
) -> T:
    """
    Ejecuta `operation`; si falla con un error transitorio, espera
    `delay_seconds` y reintenta una sola vez. La segunda falla se propaga.
    """
    try:
        return await operation()
    except Exception as e:
        if not is_transient_error(e):
            raise
        logger.warning(f"Error transitorio en {description}: {e}. Reintentando en {delay_seconds}s")

    await asyncio.sleep(delay_seconds)
    return await operation()
