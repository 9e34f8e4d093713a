"""
Utilidades para manejo de fechas y horas.

El watermark de version es un string ISO 8601 en UTC con sufijo 'Z'.
Se compara por igualdad de string (bit de "sucio" grueso), no por diff.
"""
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


# Zona horaria local del sistema origen
SOURCE_TIMEZONE = ZoneInfo("Asia/Jerusalem")


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    SQLite devuelve datetimes naive aunque la columna sea timezone=True;
    se asumen en UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_watermark(dt: datetime) -> str:
    """
    Serializa el timestamp de modificacion como watermark.

    Ejemplo: 2024-01-01T00:00:00Z
    """
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def to_source_local(dt: datetime) -> datetime:
    """Convierte a la hora local del sistema origen."""
    return ensure_utc(dt).astimezone(SOURCE_TIMEZONE)
