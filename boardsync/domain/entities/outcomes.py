"""
Resultados etiquetados en el borde Resolver/Planner.

Los conflictos de insercion (otra corrida ya creo la fila) y las fallas de
un registro se representan como valores, no como excepciones. Las
excepciones quedan reservadas para fallas de infraestructura.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OutcomeKind(str, Enum):
    OK = "ok"
    RACE = "race"
    FAILURE = "failure"


class FailureKind(str, Enum):
    """Motivo de una falla de registro."""
    REMOTE_LOOKUP = "remote_lookup"
    PERSISTENCE = "persistence"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    failure_kind: Optional[FailureKind] = None
    error: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.kind == OutcomeKind.OK

    @property
    def is_race(self) -> bool:
        return self.kind == OutcomeKind.RACE

    @property
    def is_failure(self) -> bool:
        return self.kind == OutcomeKind.FAILURE

    @classmethod
    def ok(cls) -> "Outcome":
        return cls(OutcomeKind.OK)

    @classmethod
    def race(cls, error: Optional[str] = None) -> "Outcome":
        return cls(OutcomeKind.RACE, error=error)

    @classmethod
    def failure(cls, failure_kind: FailureKind, error: str) -> "Outcome":
        return cls(OutcomeKind.FAILURE, failure_kind=failure_kind, error=error)
