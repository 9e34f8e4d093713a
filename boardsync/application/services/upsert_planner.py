"""
Detector de cambios y planificador de upsert.

El watermark de modificacion funciona como bit de "sucio" grueso: si
cambia, se reenvian todas las columnas. Es seguro (idempotente) aunque no
minimo.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from boardsync.domain.entities.records import MappingRecord, SourceRecord
from boardsync.shared.utils.datetime_utils import to_watermark


class PlanKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


@dataclass(frozen=True)
class UpsertPlan:
    kind: PlanKind
    watermark: str
    name_changed: bool = False
    data_changed: bool = False


def record_watermark(record: SourceRecord) -> str:
    return to_watermark(record.modified_at) if record.modified_at else ""


def plan(mapping: Optional[MappingRecord], record: SourceRecord, rendered_name: str) -> UpsertPlan:
    """Create sin mapeo; Update si cambio nombre o datos; Skip si nada cambio."""
    watermark = record_watermark(record)
    if mapping is None:
        return UpsertPlan(PlanKind.CREATE, watermark, name_changed=True, data_changed=True)

    data_changed = mapping.version_watermark != watermark
    name_changed = mapping.checksum != rendered_name
    if not data_changed and not name_changed:
        return UpsertPlan(PlanKind.SKIP, watermark)
    return UpsertPlan(PlanKind.UPDATE, watermark, name_changed=name_changed, data_changed=data_changed)
