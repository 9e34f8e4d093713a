"""
Casos de uso de alertas operativas.

- Cada alerta pasa por un Guardrail propio (dedup + limite de por vida +
  limite por hora) antes de encolarse.
- La cola es acotada: si esta llena se descarta la alerta mas vieja.
- Un unico worker entrega las alertas por el transporte configurado.
- Periodicamente se envia un digest con las alertas suprimidas.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Protocol

from loguru import logger

from boardsync.application.services.guardrail import Guardrail, GuardrailDecision, fingerprint
from boardsync.shared.utils.datetime_utils import utc_now

DIGEST_SUBJECT = "[BOARDSYNC] Digest"


class AlertTransport(Protocol):
    async def send(self, subject: str, body: str) -> bool:
        ...


@dataclass(frozen=True)
class Alert:
    subject: str
    body: str
    category: str
    severity: str
    fingerprint: str
    created_at: datetime = field(default_factory=utc_now)


class AlertNotifier:
    """Encola alertas aceptadas por el guardrail y las entrega en background."""

    def __init__(
        self,
        transport: AlertTransport,
        guardrail: Guardrail,
        capacity: int = 100,
        subject_prefix: str = "[BOARDSYNC ALERT]",
        enabled: bool = True,
    ):
        self.transport = transport
        self.guardrail = guardrail
        self.subject_prefix = subject_prefix
        self.enabled = enabled
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self.dropped = 0
        self.sent = 0
        self._worker: Optional[asyncio.Task] = None

    def notify(
        self,
        category: str,
        message: str,
        source: Optional[str] = None,
        severity: str = "error",
    ) -> Optional[GuardrailDecision]:
        """
        Registra una alerta. No bloquea: solo decide y encola.

        Returns:
            La decision del guardrail, o None si las alertas estan desactivadas.
        """
        if not self.enabled:
            return None

        fp = fingerprint(category, message, source)
        decision = self.guardrail.try_acquire(fp, label=f"{category}: {message[:120]}")
        if decision != GuardrailDecision.ACCEPTED:
            logger.debug(f"Alerta {category} no enviada ({decision.value})")
            return decision

        body = f"[{severity.upper()}] {message}"
        if source:
            body += f"\nFuente: {source}"
        self._enqueue(
            Alert(
                subject=f"{self.subject_prefix} {category}",
                body=body,
                category=category,
                severity=severity,
                fingerprint=fp,
            )
        )
        return decision

    def _enqueue(self, alert: Alert) -> None:
        if self.queue.full():
            oldest = self.queue.get_nowait()
            self.queue.task_done()
            self.dropped += 1
            logger.warning(f"Cola de alertas llena: se descarta '{oldest.subject}'")
        self.queue.put_nowait(alert)

    async def flush_digest(self) -> Optional[str]:
        """
        Encola un digest con los contadores de suprimidas y los resetea.

        Returns:
            El cuerpo del digest, o None si no hubo suprimidas.
        """
        suppressed = self.guardrail.drain_suppressed()
        if not suppressed:
            return None

        lines = [f"Alertas suprimidas desde el ultimo digest: {len(suppressed)}"]
        for item in sorted(suppressed, key=lambda s: s.suppressed_count, reverse=True):
            lines.append(f"- {item.label} (x{item.suppressed_count})")
        body = "\n".join(lines)

        self._enqueue(
            Alert(
                subject=DIGEST_SUBJECT,
                body=body,
                category="Digest",
                severity="info",
                fingerprint="digest",
            )
        )
        return body

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
            logger.info("Worker de alertas iniciado")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Worker de alertas detenido")

    async def _run(self) -> None:
        while True:
            alert = await self.queue.get()
            try:
                if await self.transport.send(alert.subject, alert.body):
                    self.sent += 1
            except Exception as e:
                logger.error(f"Error entregando alerta '{alert.subject}': {e}")
            finally:
                self.queue.task_done()


def build_alert_notifier(settings, transport: AlertTransport) -> AlertNotifier:
    """Crea el notificador con los limites configurados."""
    guardrail = Guardrail(
        dedup_window=timedelta(minutes=settings.ALERT_DEDUP_WINDOW_MINUTES),
        max_lifetime=settings.ALERT_MAX_LIFETIME,
        max_per_window=settings.ALERT_MAX_PER_HOUR,
        rate_window=timedelta(hours=1),
    )
    return AlertNotifier(
        transport,
        guardrail,
        capacity=settings.ALERT_QUEUE_CAPACITY,
        subject_prefix=settings.ALERT_SUBJECT_PREFIX,
        enabled=settings.ALERTS_ENABLED,
    )
