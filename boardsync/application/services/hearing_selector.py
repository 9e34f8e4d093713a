"""
Seleccion de la audiencia mas proxima por registro.
"""
from datetime import datetime
from typing import Dict, Iterable

from boardsync.domain.entities.records import HearingSource
from boardsync.shared.utils.datetime_utils import ensure_utc


def pick_nearest_upcoming(hearings: Iterable[HearingSource], now: datetime) -> Dict[int, HearingSource]:
    """
    Una audiencia por natural key: la de menor inicio con inicio >= now.
    Las claves sin audiencias futuras no aparecen en el resultado.
    """
    now = ensure_utc(now)
    nearest: Dict[int, HearingSource] = {}
    for hearing in hearings or []:
        if hearing.start_at is None or ensure_utc(hearing.start_at) < now:
            continue
        current = nearest.get(hearing.natural_key)
        if current is None or ensure_utc(hearing.start_at) < ensure_utc(current.start_at):
            nearest[hearing.natural_key] = hearing
    return nearest
