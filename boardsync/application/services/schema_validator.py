"""
Validador de valores contra el esquema dinamico del board.

- Campos criticos: cualquier falla aborta el registro (sin defaults ni
  reintentos). Las fallas de infraestructura al leer metadata se propagan
  como SchemaMetadataUnavailableError, nunca como INVALID_LABEL.
- Campos opcionales: cualquier falla (incluida infraestructura) omite el
  campo con un warning y el registro sigue.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from loguru import logger

from boardsync.infrastructure.external.board.metadata_provider import BoardMetadataProvider
from boardsync.infrastructure.external.board.types import DROPDOWN_COLUMN_TYPES, STATUS_COLUMN_TYPES
from boardsync.shared.exceptions.reconciliation import (
    CriticalFieldValidationError,
    SchemaMetadataUnavailableError,
)


class ValidationErrorKind(str, Enum):
    MISSING_VALUE = "MissingValue"
    MISSING_FIELD_TYPE = "MissingFieldType"
    INVALID_LABEL = "InvalidLabel"
    UNSUPPORTED_FIELD_TYPE = "UnsupportedFieldType"


@dataclass(frozen=True)
class ValidationResult:
    kind: Optional[ValidationErrorKind] = None
    message: str = ""
    column_type: Optional[str] = None
    allowed_labels: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def ok(self) -> bool:
        return self.kind is None


class ClientDropdownAction(str, Enum):
    INCLUDE_DROPDOWN = "include_dropdown"
    USE_FALLBACK_TEXT = "use_fallback_text"
    OMIT = "omit"


def resolve_client_dropdown_action(
    value: Optional[str],
    allowed_labels: FrozenSet[str],
    fallback_text_column_id: Optional[str],
) -> ClientDropdownAction:
    """
    Decide como escribir el cliente: dropdown si el label existe, columna de
    texto de respaldo si esta configurada, o nada. Nunca se envia un label
    invalido al dropdown.
    """
    trimmed = (value or "").strip()
    if not trimmed:
        return ClientDropdownAction.OMIT
    if trimmed in allowed_labels:
        return ClientDropdownAction.INCLUDE_DROPDOWN
    if fallback_text_column_id:
        return ClientDropdownAction.USE_FALLBACK_TEXT
    return ClientDropdownAction.OMIT


class SchemaValidator:
    """Valida valores candidatos contra tipos y labels del board (cacheados)."""

    def __init__(self, metadata: BoardMetadataProvider):
        self.metadata = metadata

    async def validate_critical(self, scope: int, column_id: str, value: Any) -> ValidationResult:
        """
        Valida un valor para una columna con set de labels.

        Raises:
            SchemaMetadataUnavailableError: no se pudo consultar el esquema.
        """
        candidate = "" if value is None else str(value).strip()
        if not candidate:
            return ValidationResult(
                ValidationErrorKind.MISSING_VALUE,
                f"Valor vacio para la columna {column_id}",
            )

        column_type = await self.metadata.get_column_type(scope, column_id)
        if not column_type:
            return ValidationResult(
                ValidationErrorKind.MISSING_FIELD_TYPE,
                f"No se encontro el tipo de la columna {column_id} en el board {scope}",
            )

        if column_type not in STATUS_COLUMN_TYPES and column_type not in DROPDOWN_COLUMN_TYPES:
            return ValidationResult(
                ValidationErrorKind.UNSUPPORTED_FIELD_TYPE,
                f"Tipo de columna no soportado para validacion: {column_type} ({column_id})",
                column_type=column_type,
            )

        labels = await self.metadata.get_allowed_labels(scope, column_id)
        if candidate not in labels:
            allowed = ", ".join(sorted(labels))
            return ValidationResult(
                ValidationErrorKind.INVALID_LABEL,
                f"Label '{candidate}' no permitido en {column_id} ({column_type}). "
                f"Permitidos: [{allowed}]",
                column_type=column_type,
                allowed_labels=labels,
            )

        return ValidationResult(column_type=column_type, allowed_labels=labels)

    async def require_critical(
        self,
        *,
        natural_key: int,
        display_key: Optional[str],
        scope: int,
        column_id: str,
        value: Any,
    ) -> str:
        """
        Igual que validate_critical pero levanta CriticalFieldValidationError
        con todo el contexto del registro. Retorna el valor recortado.
        """
        result = await self.validate_critical(scope, column_id, value)
        if not result.ok:
            raise CriticalFieldValidationError(
                natural_key=natural_key,
                display_key=display_key,
                column_id=column_id,
                value=value,
                reason=result.kind.value,
                allowed_labels=result.allowed_labels,
                message=result.message,
            )
        return str(value).strip()

    async def resolve_optional(self, scope: int, column_id: str, value: Any) -> Optional[str]:
        """Valor validado o None (con warning) ante cualquier falla."""
        try:
            result = await self.validate_critical(scope, column_id, value)
        except (SchemaMetadataUnavailableError, ValueError) as e:
            logger.warning(f"Campo opcional {column_id} omitido: metadata no disponible ({e})")
            return None
        if not result.ok:
            if result.kind != ValidationErrorKind.MISSING_VALUE:
                logger.warning(f"Campo opcional {column_id} omitido: {result.message}")
            return None
        return str(value).strip()

    async def resolve_client_columns(
        self,
        scope: int,
        value: Optional[str],
        dropdown_column_id: str,
        fallback_text_column_id: Optional[str],
    ) -> Dict[str, Any]:
        """
        Valores de columna para el cliente (dropdown o texto de respaldo).
        Campo no critico: un error de metadata se trata como set vacio.
        """
        trimmed = (value or "").strip()
        if not trimmed or not dropdown_column_id:
            return {}
        try:
            labels = await self.metadata.get_allowed_labels(scope, dropdown_column_id)
        except (SchemaMetadataUnavailableError, ValueError) as e:
            logger.warning(f"Labels del dropdown {dropdown_column_id} no disponibles: {e}")
            labels = frozenset()

        action = resolve_client_dropdown_action(trimmed, labels, fallback_text_column_id)
        if action == ClientDropdownAction.INCLUDE_DROPDOWN:
            return {dropdown_column_id: {"labels": [trimmed]}}
        if action == ClientDropdownAction.USE_FALLBACK_TEXT:
            logger.info(
                f"Cliente '{trimmed}' no existe en el dropdown {dropdown_column_id}; "
                f"se usa la columna de texto {fallback_text_column_id}"
            )
            return {fallback_text_column_id: trimmed}
        logger.warning(
            f"Cliente '{trimmed}' no existe en el dropdown {dropdown_column_id} y no hay "
            f"columna de respaldo; se omite"
        )
        return {}
