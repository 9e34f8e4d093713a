"""
Servicios de aplicacion.

Contiene la logica de reconciliacion reutilizable que no pertenece
a un caso de uso especifico: guardrail, validacion de esquema, resolver,
planner y gate de audiencias.
"""
from boardsync.application.services.guardrail import Guardrail, GuardrailDecision, fingerprint
from boardsync.application.services.schema_validator import SchemaValidator, ValidationErrorKind
from boardsync.application.services.hearing_gate import GateDecision, compute_steps
from boardsync.application.services.upsert_planner import PlanKind, UpsertPlan, plan

__all__ = [
    # Guardrail
    "Guardrail",
    "GuardrailDecision",
    "fingerprint",
    # Esquema del board
    "SchemaValidator",
    "ValidationErrorKind",
    # Audiencias
    "GateDecision",
    "compute_steps",
    # Planner
    "PlanKind",
    "UpsertPlan",
    "plan",
]
