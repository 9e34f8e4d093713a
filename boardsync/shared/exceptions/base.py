"""
Excepción base para todas las excepciones propias del servicio.
"""
from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Excepción base del servicio.
    Las excepciones de dominio y de reconciliacion heredan de esta clase.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Inicializa la excepción.

        Args:
            message: Mensaje de error descriptivo
            status_code: Código de estado HTTP (si llega a la API)
            error_code: Código de error estable para logs y respuestas
            details: Detalles adicionales del error
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)
