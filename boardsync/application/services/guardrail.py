"""
Guardrail: deduplicacion + rate limit por ventana deslizante.

Se reutiliza por composicion en dos lugares:
- escrituras salientes al board (una instancia por corrida)
- alertas (una instancia por proceso)

El chequeo y el registro ocurren bajo el mismo lock, asi dos llamadores
concurrentes nunca ven "no limitado" a la vez y pasan los dos. El lock solo
protege operaciones en memoria; nunca se mantiene durante una llamada de red.
"""
from __future__ import annotations

import hashlib
import re
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional

from boardsync.shared.utils.datetime_utils import utc_now

Clock = Callable[[], datetime]

_RUN_ID_RE = re.compile(r"runid=[a-f0-9]+")
_LINE_RE = re.compile(r":line \d+")
_NUMBER_RE = re.compile(r"(?<==)\d{3,}")


def normalize_message(message: Optional[str]) -> str:
    """Quita substrings volatiles (run ids, lineas de stack trace, contadores)."""
    text = (message or "").strip().lower()
    text = _RUN_ID_RE.sub("runid=<id>", text)
    text = _LINE_RE.sub(":line <n>", text)
    text = _NUMBER_RE.sub("<n>", text)
    return text


def fingerprint(category: Optional[str], message: Optional[str], source: Optional[str]) -> str:
    """Hash sha256 (hex) de categoria + mensaje normalizado + fuente."""
    key = f"{category or 'Unknown'}|{normalize_message(message)}|{source or 'Unknown'}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class GuardrailDecision(str, Enum):
    ACCEPTED = "accepted"
    SUPPRESSED = "suppressed"
    RATE_LIMITED = "rate_limited"


@dataclass
class DedupEntry:
    first_seen: datetime
    last_seen: datetime
    occurrence_count: int = 0
    suppressed_count: int = 0
    last_accepted: Optional[datetime] = None
    label: str = ""


@dataclass(frozen=True)
class SuppressedSummary:
    """Una linea del digest: fingerprint suprimido y cuantas veces."""
    fingerprint: str
    label: str
    suppressed_count: int
    occurrence_count: int


class DedupPolicy:
    """
    Estado de dedup por fingerprint.

    No tiene lock propio: se usa siempre a traves de Guardrail.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._entries: Dict[str, DedupEntry] = {}

    def _touch(self, fp: str, now: datetime, label: Optional[str]) -> DedupEntry:
        entry = self._entries.get(fp)
        if entry is None:
            entry = DedupEntry(first_seen=now, last_seen=now, label=label or "")
            self._entries[fp] = entry
        entry.last_seen = now
        entry.occurrence_count += 1
        if label and not entry.label:
            entry.label = label
        return entry

    def should_suppress(self, fp: str, window: timedelta, now: Optional[datetime] = None) -> bool:
        """La primera ocurrencia nunca se suprime; luego, solo dentro de la ventana."""
        now = now or self._clock()
        entry = self._entries.get(fp)
        if entry is None or entry.last_accepted is None:
            return False
        return now - entry.last_accepted < window

    def record_accepted(self, fp: str, now: Optional[datetime] = None, label: Optional[str] = None) -> None:
        now = now or self._clock()
        entry = self._touch(fp, now, label)
        entry.last_accepted = now

    def record_suppressed(self, fp: str, now: Optional[datetime] = None, label: Optional[str] = None) -> None:
        entry = self._touch(fp, now or self._clock(), label)
        entry.suppressed_count += 1

    def record_seen(self, fp: str, now: Optional[datetime] = None, label: Optional[str] = None) -> None:
        self._touch(fp, now or self._clock(), label)

    def get(self, fp: str) -> Optional[DedupEntry]:
        return self._entries.get(fp)

    def drain_suppressed(self) -> List[SuppressedSummary]:
        """Devuelve los contadores de suprimidos y los pone en cero."""
        summary = []
        for fp, entry in self._entries.items():
            if entry.suppressed_count:
                summary.append(
                    SuppressedSummary(
                        fingerprint=fp,
                        label=entry.label,
                        suppressed_count=entry.suppressed_count,
                        occurrence_count=entry.occurrence_count,
                    )
                )
                entry.suppressed_count = 0
        return summary


class SlidingWindowRateLimiter:
    """
    Lista deslizante de timestamps aceptados.

    Limitado cuando la cantidad dentro de la ventana llega a `max_actions`.
    `window=None` es un contador de por vida (nunca se poda).
    `max_actions <= 0` desactiva el limite.
    """

    def __init__(self, max_actions: int, window: Optional[timedelta], clock: Clock = utc_now) -> None:
        self.max_actions = max_actions
        self.window = window
        self._clock = clock
        self._timestamps: Deque[datetime] = deque()

    def _prune(self, now: datetime) -> None:
        if self.window is None:
            return
        threshold = now - self.window
        while self._timestamps and self._timestamps[0] <= threshold:
            self._timestamps.popleft()

    def is_limited(self, now: Optional[datetime] = None) -> bool:
        if self.max_actions <= 0:
            return False
        self._prune(now or self._clock())
        return len(self._timestamps) >= self.max_actions

    def record(self, now: Optional[datetime] = None) -> None:
        self._timestamps.append(now or self._clock())

    @property
    def count(self) -> int:
        return len(self._timestamps)


class Guardrail:
    """Dedup + limitador de por vida + limitador por ventana, bajo un solo lock."""

    def __init__(
        self,
        dedup_window: timedelta,
        max_lifetime: int,
        max_per_window: int,
        rate_window: timedelta = timedelta(minutes=1),
        clock: Clock = utc_now,
    ) -> None:
        self.dedup_window = dedup_window
        self._clock = clock
        self._lock = threading.Lock()
        self.dedup = DedupPolicy(clock)
        self.lifetime_limiter = SlidingWindowRateLimiter(max_lifetime, None, clock)
        self.window_limiter = SlidingWindowRateLimiter(max_per_window, rate_window, clock)

    def try_acquire(self, fp: str, label: Optional[str] = None) -> GuardrailDecision:
        with self._lock:
            now = self._clock()
            if self.dedup.should_suppress(fp, self.dedup_window, now):
                self.dedup.record_suppressed(fp, now, label)
                return GuardrailDecision.SUPPRESSED
            if self.lifetime_limiter.is_limited(now) or self.window_limiter.is_limited(now):
                self.dedup.record_seen(fp, now, label)
                return GuardrailDecision.RATE_LIMITED
            self.dedup.record_accepted(fp, now, label)
            self.lifetime_limiter.record(now)
            self.window_limiter.record(now)
            return GuardrailDecision.ACCEPTED

    def drain_suppressed(self) -> List[SuppressedSummary]:
        with self._lock:
            return self.dedup.drain_suppressed()
