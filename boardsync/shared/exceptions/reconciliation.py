"""
Excepciones del motor de reconciliacion.

Separa dos familias que nunca deben confundirse:
- Validacion (el valor del registro no es aceptable para el board): aborta
  solo ese registro, sin reintentos ni valores por defecto.
- Infraestructura (no se pudo consultar el esquema remoto: auth, red,
  configuracion): se propaga como excepcion distinta.
"""
from typing import Any, Iterable, Optional

from boardsync.shared.exceptions.base import AppException


class ReconciliationException(AppException):
    """Excepción base para errores de reconciliacion."""

    def __init__(self, message: str, error_code: str = "RECONCILIATION_ERROR", details=None):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )


class CriticalFieldValidationError(ReconciliationException):
    """
    Un campo critico no paso la validacion contra el esquema del board.
    El registro se aborta y se audita con todo el contexto.
    """

    def __init__(
        self,
        natural_key: int,
        display_key: Optional[str],
        column_id: str,
        value: Any,
        reason: str,
        allowed_labels: Optional[Iterable[str]] = None,
        message: Optional[str] = None,
    ):
        self.natural_key = natural_key
        self.display_key = display_key
        self.column_id = column_id
        self.value = value
        self.reason = reason
        self.allowed_labels = sorted(allowed_labels) if allowed_labels else []
        super().__init__(
            message=message or (
                f"Validacion critica fallida: natural_key={natural_key}, "
                f"display_key={display_key}, columna={column_id}, "
                f"valor='{value}', motivo={reason}"
            ),
            error_code="CRITICAL_FIELD_VALIDATION",
            details={
                "natural_key": natural_key,
                "display_key": display_key,
                "column_id": column_id,
                "value": None if value is None else str(value),
                "reason": reason,
                "allowed_labels": self.allowed_labels,
            }
        )


class SchemaMetadataUnavailableError(AppException):
    """
    No se pudo obtener metadata del esquema remoto (auth/red/config).
    Nunca se convierte en un set vacio de labels.
    """

    def __init__(self, board_id: int, column_id: str, cause: str):
        self.board_id = board_id
        self.column_id = column_id
        self.cause = cause
        super().__init__(
            message=(
                f"Metadata del board no disponible: board={board_id}, "
                f"columna={column_id}: {cause}"
            ),
            status_code=503,
            error_code="SCHEMA_METADATA_UNAVAILABLE",
            details={"board_id": board_id, "column_id": column_id, "cause": cause}
        )


class RunLockUnavailableError(ReconciliationException):
    """Otra corrida tiene el lock de sincronizacion."""

    def __init__(self, lock_name: str, locked_by: Optional[str]):
        self.lock_name = lock_name
        self.locked_by = locked_by
        super().__init__(
            message=f"Lock '{lock_name}' ocupado por {locked_by or 'desconocido'}",
            error_code="RUN_LOCK_UNAVAILABLE",
            details={"lock_name": lock_name, "locked_by": locked_by}
        )
        self.status_code = 409
