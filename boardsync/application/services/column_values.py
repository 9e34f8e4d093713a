"""
Construccion del nombre de item y de los valores de columna del board
a partir de un registro origen.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from boardsync.application.services.schema_validator import SchemaValidator
from boardsync.domain.entities.records import MappingRecord, SourceRecord
from boardsync.shared.constants.sync_constants import TEST_NAME_PREFIX
from boardsync.shared.utils.datetime_utils import to_source_local

# Indices del status de caso en el board
STATUS_INDEX_OPEN = 0
STATUS_INDEX_CLOSED = 1
STATUS_INDEX_STUCK = 2
STATUS_INDEX_DEFAULT = 5


def build_item_name(record: SourceRecord, test_mode: bool) -> Tuple[str, bool]:
    """
    Nombre del item: numero de caso (o nombre, o natural key).

    Returns:
        (nombre, prefix_applied). En modo test se antepone "[TEST] " una
        sola vez (idempotente).
    """
    base = (
        record.field_text("case_number")
        or record.field_text("case_name")
        or str(record.natural_key)
    )
    if not test_mode or base.startswith(TEST_NAME_PREFIX):
        return base, False
    return f"{TEST_NAME_PREFIX}{base}", True


def map_status_index(status: Optional[str]) -> int:
    """Indice del status del board segun el nombre de status del origen."""
    if not status or not status.strip():
        return STATUS_INDEX_DEFAULT
    s = status.lower()
    if "סגור" in s or "closed" in s:
        return STATUS_INDEX_CLOSED
    if "פתוח" in s or "open" in s or "עבודה" in s:
        return STATUS_INDEX_OPEN
    if "תקוע" in s or "stuck" in s:
        return STATUS_INDEX_STUCK
    return STATUS_INDEX_DEFAULT


def is_test_compatible(mapping: MappingRecord) -> bool:
    """Un mapeo es de prueba si se creo en modo test (flag o prefijo del nombre)."""
    return mapping.is_test or mapping.checksum.startswith(TEST_NAME_PREFIX)


@dataclass(frozen=True)
class ColumnConfig:
    """Ids de columnas del board usados por el builder."""
    display_key_column_id: str
    client_column_id: str
    client_text_column_id: str
    case_status_column_id: str
    case_status_new_label: str
    notes_column_id: str
    opened_date_column_id: str

    @classmethod
    def from_settings(cls, settings) -> "ColumnConfig":
        return cls(
            display_key_column_id=settings.DISPLAY_KEY_COLUMN_ID,
            client_column_id=settings.CLIENT_COLUMN_ID,
            client_text_column_id=settings.CLIENT_TEXT_COLUMN_ID,
            case_status_column_id=settings.CASE_STATUS_COLUMN_ID,
            case_status_new_label=settings.CASE_STATUS_NEW_LABEL,
            notes_column_id=settings.NOTES_COLUMN_ID,
            opened_date_column_id=settings.OPENED_DATE_COLUMN_ID,
        )


class ColumnValuesBuilder:
    """
    Arma el dict de column_values de un caso.

    El status de un item nuevo ("חדש") es critico: si el label no existe en
    el board el registro se aborta con CriticalFieldValidationError.
    """

    def __init__(self, columns: ColumnConfig, validator: SchemaValidator):
        self.columns = columns
        self.validator = validator

    async def build(self, record: SourceRecord, scope: int, *, is_new: bool) -> Dict[str, Any]:
        cols = self.columns
        values: Dict[str, Any] = {}

        if record.display_key and cols.display_key_column_id:
            values[cols.display_key_column_id] = record.display_key

        values.update(
            await self.validator.resolve_client_columns(
                scope,
                record.field_text("client_name"),
                cols.client_column_id,
                cols.client_text_column_id or None,
            )
        )

        notes = record.field_text("notes")
        if notes and cols.notes_column_id:
            values[cols.notes_column_id] = {"text": notes}

        if record.created_at and cols.opened_date_column_id:
            opened = to_source_local(record.created_at).date()
            values[cols.opened_date_column_id] = {"date": opened.isoformat()}

        if cols.case_status_column_id:
            if is_new:
                label = await self.validator.require_critical(
                    natural_key=record.natural_key,
                    display_key=record.display_key,
                    scope=scope,
                    column_id=cols.case_status_column_id,
                    value=cols.case_status_new_label,
                )
                values[cols.case_status_column_id] = {"label": label}
            else:
                values[cols.case_status_column_id] = {
                    "index": map_status_index(record.field_text("status_name"))
                }

        return values
