"""
Middleware para manejo centralizado de errores.

Las AppException llegan como JSON via el exception handler registrado en
main.py; este middleware atrapa todo lo demas (errores de base de datos,
del cliente del board, bugs) y responde un 500 generico.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from boardsync.shared.exceptions.base import AppException


def app_exception_response(exc: AppException) -> JSONResponse:
    """Respuesta JSON estandar para excepciones del servicio."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware para capturar errores no manejados."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except AppException as exc:
            logger.warning(f"{request.method} {request.url.path} -> {exc.error_code}: {exc.message}")
            return app_exception_response(exc)
        except Exception as exc:
            # Escapar llaves para evitar error de formato en loguru
            error_msg = str(exc).replace("{", "{{").replace("}", "}}")
            logger.error(
                f"Error no manejado en {request.method} {request.url.path}: "
                f"{type(exc).__name__}: {error_msg}"
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "INTERNAL_SERVER_ERROR",
                    "message": "Ha ocurrido un error interno del servidor",
                    "details": {},
                },
            )
