"""
Entidades del dominio de sincronizacion.

Todas son inmutables: un SourceRecord es una foto del origen valida para
una corrida; MappingRecord y HearingSnapshotRecord son copias de filas
persistidas (el repositorio nunca expone objetos ORM).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SourceRecord:
    """Registro del sistema origen (caso)."""

    natural_key: int
    display_key: Optional[str]
    fields: Dict[str, Any] = field(default_factory=dict)
    modified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def field_text(self, name: str) -> str:
        """Valor de un campo como texto recortado ('' si falta)."""
        value = self.fields.get(name)
        return "" if value is None else str(value).strip()


@dataclass(frozen=True)
class MappingRecord:
    """Mapeo persistido registro origen <-> item del board."""

    id: int
    natural_key: int
    display_key: Optional[str]
    container_scope: int
    remote_item_id: int
    version_watermark: str
    checksum: str
    is_test: bool
    created_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None


@dataclass(frozen=True)
class HearingSource:
    """Audiencia (evento de agenda) de un caso en el origen."""

    natural_key: int
    start_at: Optional[datetime]
    meet_status: Optional[int] = None
    judge_name: Optional[str] = None
    city: Optional[str] = None
    court_name: Optional[str] = None


@dataclass(frozen=True)
class HearingSnapshotRecord:
    """Ultimo estado de audiencia aplicado en el board."""

    natural_key: int
    board_id: int
    remote_item_id: int
    start_at: Optional[datetime] = None
    meet_status: Optional[int] = None
    judge_name: Optional[str] = None
    city: Optional[str] = None
