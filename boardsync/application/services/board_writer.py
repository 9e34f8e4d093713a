"""
Escrituras salientes al board pasando por el guardrail.

Cada escritura se identifica por un fingerprint de (operacion, item, payload):
la misma escritura repetida dentro de la ventana de dedup se suprime y el
total de escrituras queda acotado por proceso y por minuto.
"""
from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Optional, TypeVar

from loguru import logger

from boardsync.application.services.guardrail import Guardrail, GuardrailDecision, fingerprint
from boardsync.application.services.transient_retry import run_with_transient_retry

T = TypeVar("T")

WRITE_SOURCE = "board-writer"


class WriteBlocked(Exception):
    """La escritura no se hizo por decision del guardrail."""

    def __init__(self, decision: GuardrailDecision, description: str):
        self.decision = decision
        super().__init__(f"{description}: {decision.value}")


class GuardedBoardWriter:

    def __init__(self, guardrail: Guardrail, retry_delay_seconds: float = 0.1):
        self.guardrail = guardrail
        self.retry_delay_seconds = retry_delay_seconds

    async def write(
        self,
        operation: str,
        scope: int,
        item_id: Optional[int],
        payload: Any,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Adquiere permiso del guardrail y ejecuta `call` con reintento transitorio.

        Raises:
            WriteBlocked: la escritura fue suprimida o limitada.
        """
        description = f"{operation} board={scope} item={item_id}"
        body = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
        fp = fingerprint(operation, f"{scope}|{item_id}|{body}", WRITE_SOURCE)

        decision = self.guardrail.try_acquire(fp, label=description)
        if decision != GuardrailDecision.ACCEPTED:
            logger.warning(f"Escritura no realizada ({decision.value}): {description}")
            raise WriteBlocked(decision, description)

        return await run_with_transient_retry(call, description, self.retry_delay_seconds)
