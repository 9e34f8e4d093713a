"""
Dias habiles israelies (domingo a jueves) para el periodo de enfriamiento.
"""
from datetime import date, datetime, timedelta
from typing import Optional

from boardsync.shared.utils.datetime_utils import to_source_local

# weekday(): 0=Lunes ... 4=Viernes, 5=Sabado, 6=Domingo
NON_BUSINESS_WEEKDAYS = (4, 5)


def is_business_day(day: date) -> bool:
    """Indica si el dia es habil (domingo a jueves)."""
    return day.weekday() not in NON_BUSINESS_WEEKDAYS


def add_business_days(start: date, business_days: int) -> date:
    """
    Retorna la fecha en que se cumple el periodo de enfriamiento.

    El dia de apertura cuenta como dia habil #1 si es habil. La fecha
    elegible es el dia calendario siguiente al N-esimo dia habil.
    Ej: jueves + 3 -> jue(1), dom(2), lun(3) -> martes.
    """
    if business_days <= 0:
        return start

    current = start
    counted = 0
    while True:
        if is_business_day(current):
            counted += 1
            if counted == business_days:
                return current + timedelta(days=1)
        current += timedelta(days=1)


def cooling_period_elapsed(
    created_at: datetime,
    business_days: int,
    now: datetime,
) -> bool:
    """
    Indica si el registro ya cumplio el enfriamiento para ser creado en el board.
    Las fechas se evaluan en hora local del sistema origen.
    """
    if business_days <= 0:
        return True
    eligible = add_business_days(to_source_local(created_at).date(), business_days)
    return to_source_local(now).date() >= eligible


def is_after_cutoff(created_at: Optional[datetime], cutoff: Optional[date]) -> bool:
    """Un registro es elegible si su fecha de creacion es >= cutoff (sin cutoff, siempre)."""
    if cutoff is None:
        return True
    if created_at is None:
        return False
    return to_source_local(created_at).date() >= cutoff
