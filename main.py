"""
Punto de entrada principal de la aplicación FastAPI.
Configura la aplicación, middlewares, rutas y eventos.
"""
from fastapi import FastAPI, Request

from boardsync.api.middlewares.error_handler import ErrorHandlerMiddleware, app_exception_response
from boardsync.api.v1.router import api_router
from boardsync.core.config import settings
from boardsync.core.events import lifespan
from boardsync.shared.exceptions.base import AppException


def create_application() -> FastAPI:
    """
    Factory para crear y configurar la aplicación FastAPI.

    Returns:
        FastAPI: Instancia configurada de la aplicación
    """
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Reconciliacion de casos del sistema origen con el board",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware personalizado para manejo de errores
    application.add_middleware(ErrorHandlerMiddleware)

    # Incluir routers de la API
    application.include_router(api_router, prefix="/api")

    # Manejador global de excepciones personalizadas
    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return app_exception_response(exc)

    # Health check endpoint
    @application.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Endpoint para verificar el estado de la aplicación y del worker."""
        worker = getattr(request.app.state, "sync_worker", None)
        last = worker.last_summary if worker is not None else None
        return {
            "status": "healthy",
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "sync_enabled": settings.SYNC_ENABLED,
            "worker_running": bool(worker and worker.scheduler),
            "last_run": {
                "run_id": last.run_id,
                "status": last.status,
                "finished_at": last.finished_at,
            } if last else None,
        }

    return application


# Crear instancia de la aplicación
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
