"""
Gate de actualizacion parcial para el grupo de columnas de audiencia
(status, juez, ciudad, fecha/hora).

- Status: se escribe solo si cambio y no es el valor neutral ("פעיל"),
  para no revertir un status puesto a mano.
- Juez y ciudad: cada uno por separado, si no esta vacio y cambio.
- Fecha/hora: solo si cambio Y juez y ciudad efectiva estan presentes.
  El board dispara notificaciones al cambiar la fecha y no deben salir
  con contexto incompleto.
- Audiencia cancelada: solo el status; juez, ciudad y fecha no se tocan.

La ciudad efectiva cae al nombre del tribunal cuando la ciudad esta vacia;
el fallback se resuelve antes de comparar. Funcion pura y determinista.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from boardsync.domain.entities.records import HearingSnapshotRecord, HearingSource
from boardsync.shared.constants.sync_constants import (
    MEET_STATUS_LABELS,
    NEUTRAL_MEET_STATUS,
    MeetStatus,
)
from boardsync.shared.utils.datetime_utils import ensure_utc

STEP_UPDATE_JUDGE = "UpdateJudge"
STEP_UPDATE_CITY = "UpdateCity"
STEP_UPDATE_HEARING_DATE = "UpdateHearingDate"
STEP_SET_STATUS_PREFIX = "SetStatus_"


@dataclass(frozen=True)
class GateDecision:
    steps: Tuple[str, ...]
    status_changed: bool
    judge_changed: bool
    city_changed: bool
    date_changed: bool
    status_allowed: bool
    date_allowed: bool
    status_label: Optional[str] = None
    judge: str = ""
    city: str = ""


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def effective_city(hearing: HearingSource) -> str:
    return _clean(hearing.city) or _clean(hearing.court_name)


def status_label(meet_status: Optional[int]) -> Optional[str]:
    if meet_status is None:
        return None
    try:
        return MEET_STATUS_LABELS[MeetStatus(meet_status)]
    except ValueError:
        return None


def _same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None or b is None:
        return a is b
    return ensure_utc(a) == ensure_utc(b)


def compute_steps(current: HearingSource, previous: Optional[HearingSnapshotRecord]) -> GateDecision:
    judge = _clean(current.judge_name)
    city = effective_city(current)

    prev_status = previous.meet_status if previous else None
    prev_judge = _clean(previous.judge_name) if previous else ""
    prev_city = _clean(previous.city) if previous else ""
    prev_start = previous.start_at if previous else None

    status_changed = current.meet_status is not None and current.meet_status != prev_status
    label = status_label(current.meet_status)
    status_allowed = label is not None and current.meet_status != NEUTRAL_MEET_STATUS.value

    judge_changed = judge != prev_judge
    city_changed = city != prev_city
    date_changed = current.start_at is not None and not _same_instant(current.start_at, prev_start)
    # Audiencia cancelada: solo se marca el status
    cancelled = current.meet_status == MeetStatus.CANCELLED
    date_allowed = bool(judge) and bool(city) and not cancelled

    steps = []
    if status_changed and status_allowed:
        steps.append(f"{STEP_SET_STATUS_PREFIX}{label}")
    if not cancelled:
        if judge and judge_changed:
            steps.append(STEP_UPDATE_JUDGE)
        if city and city_changed:
            steps.append(STEP_UPDATE_CITY)
    if date_changed and date_allowed:
        steps.append(STEP_UPDATE_HEARING_DATE)

    return GateDecision(
        steps=tuple(steps),
        status_changed=status_changed,
        judge_changed=judge_changed,
        city_changed=city_changed,
        date_changed=date_changed,
        status_allowed=status_allowed,
        date_allowed=date_allowed,
        status_label=label,
        judge=judge,
        city=city,
    )
