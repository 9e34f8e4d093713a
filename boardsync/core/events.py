"""
Manejadores de eventos de inicio y cierre de la aplicacion.

Se registran en FastAPI a traves del context manager `lifespan`.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from loguru import logger

from boardsync.application.use_cases.alert_use_cases import build_alert_notifier
from boardsync.core.config import settings
from boardsync.infrastructure.database.session import AsyncSessionLocal, close_db, init_db
from boardsync.infrastructure.external.board.board_client import BoardClient
from boardsync.infrastructure.external.board.types import BoardCredentials
from boardsync.infrastructure.external.telegram.telegram_client import TelegramAlertTransport
from boardsync.infrastructure.scheduler.sync_worker import SyncWorker
from boardsync.shared.utils.audit_logger import SyncAuditLogger


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            _validate_config()

            # Configurar logging adicional
            logger.add(
                settings.LOG_FILE,
                rotation="500 MB",
                retention="10 days",
                level=settings.LOG_LEVEL
            )

            # Inicializar base de datos (crea tablas si no existen)
            await init_db()
            logger.info("Base de datos inicializada")

            SyncAuditLogger.initialize()

            alerts = build_alert_notifier(settings, TelegramAlertTransport())
            await alerts.start()
            app.state.alerts = alerts

            board = BoardClient(
                BoardCredentials(token=settings.BOARD_API_TOKEN, api_url=settings.BOARD_API_URL),
                timeout_s=settings.BOARD_API_TIMEOUT_SECONDS,
            )
            worker = SyncWorker(settings, AsyncSessionLocal, board, alerts)
            app.state.board_client = board
            app.state.sync_worker = worker

            if settings.SYNC_ENABLED:
                worker.start()
            else:
                logger.warning("SYNC_ENABLED=false: el worker no se programa (solo corridas manuales)")

            logger.success("Aplicacion iniciada correctamente")

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    if not settings.BOARD_API_TOKEN:
        warnings.append("BOARD_API_TOKEN no configurado - las escrituras al board fallaran")
    if not settings.BOARD_ID:
        warnings.append("BOARD_ID no configurado")
    if settings.ALERTS_ENABLED and not (settings.TELEGRAM_BOT_TOKEN and settings.TELEGRAM_CHAT_ID):
        warnings.append("Telegram no configurado - las alertas solo se loguean")
    if settings.SYNC_DRY_RUN:
        warnings.append("SYNC_DRY_RUN activo - no se escribira en el board")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")

        worker = getattr(app.state, "sync_worker", None)
        if worker is not None:
            await worker.stop()

        alerts = getattr(app.state, "alerts", None)
        if alerts is not None:
            await alerts.stop()

        board = getattr(app.state, "board_client", None)
        if board is not None:
            await board.aclose()
            logger.info("Cliente del board cerrado")

        await close_db()
        logger.info("Conexiones de base de datos cerradas")

        logger.success("Aplicacion cerrada correctamente")

    return shutdown


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Ciclo de vida de la aplicacion: startup antes de servir, shutdown al salir."""
    await startup_handler(app)()
    try:
        yield
    finally:
        await shutdown_handler(app)()
