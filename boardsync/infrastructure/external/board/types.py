"""
Tipos y utilidades puras para la integracion con el board remoto.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional


# Tipos de columna con set de labels restringido
STATUS_COLUMN_TYPES = frozenset({"status", "color"})
DROPDOWN_COLUMN_TYPES = frozenset({"dropdown"})


@dataclass(frozen=True)
class BoardCredentials:
    token: str
    api_url: str = "https://api.monday.com/v2"


@dataclass(frozen=True)
class BoardColumn:
    """
    Metadata de una columna del board.

    - type: discriminador de tipo ("status", "dropdown", "text", ...)
    - settings: settings_str ya parseado (dict vacio si no aplica)
    """

    id: str
    type: str
    title: str = ""
    settings: dict[str, Any] = field(default_factory=dict)


def parse_settings_str(raw: Optional[str]) -> dict[str, Any]:
    """Parsea settings_str; string vacio o JSON invalido -> dict vacio."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (ValueError, TypeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def status_labels(settings: dict[str, Any]) -> set[str]:
    """
    Labels de una columna status: {"labels": {"0": "Working", "1": "Done"}}.
    """
    labels = settings.get("labels") or {}
    if isinstance(labels, dict):
        return {str(v).strip() for v in labels.values() if v and str(v).strip()}
    return set()


def dropdown_labels(settings: dict[str, Any]) -> set[str]:
    """
    Labels de una columna dropdown: {"labels": [{"id": 1, "name": "A"}]}.
    """
    labels = settings.get("labels") or []
    result: set[str] = set()
    if isinstance(labels, list):
        for label in labels:
            if isinstance(label, dict):
                name = label.get("name")
                if name and str(name).strip():
                    result.add(str(name).strip())
    return result
