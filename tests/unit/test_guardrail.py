"""
Tests unitarios del guardrail: fingerprint, dedup y limitadores.
"""
from datetime import datetime, timedelta, timezone

from boardsync.application.services.guardrail import (
    Guardrail,
    GuardrailDecision,
    SlidingWindowRateLimiter,
    fingerprint,
    normalize_message,
)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class TestFingerprint:
    """Tests para normalize_message y fingerprint."""

    def test_normalize_message_strips_volatile_parts(self):
        """Run ids, lineas y numeros largos no cambian el fingerprint."""
        a = normalize_message("Fallo runId=abc123 en Foo.cs:line 42 count=1234")
        b = normalize_message("fallo runid=ffee99 en foo.cs:line 7 count=98765")
        assert a == b

    def test_fingerprint_defaults_unknown_category_and_source(self):
        assert fingerprint(None, "msg", None) == fingerprint("Unknown", "msg", "Unknown")
        assert fingerprint("A", "msg", "src") != fingerprint("B", "msg", "src")


class TestGuardrail:
    """Tests para Guardrail.try_acquire."""

    def test_first_occurrence_is_never_suppressed(self):
        clock = FakeClock()
        guardrail = Guardrail(timedelta(minutes=60), max_lifetime=0, max_per_window=0, clock=clock)

        assert guardrail.try_acquire("fp") == GuardrailDecision.ACCEPTED
        assert guardrail.try_acquire("fp") == GuardrailDecision.SUPPRESSED

        clock.advance(minutes=61)
        assert guardrail.try_acquire("fp") == GuardrailDecision.ACCEPTED

    def test_suppressed_counts_drain_into_digest(self):
        """El digest reporta suprimidos y resetea los contadores."""
        clock = FakeClock()
        guardrail = Guardrail(timedelta(minutes=60), max_lifetime=0, max_per_window=0, clock=clock)

        guardrail.try_acquire("fp", label="SyncFailures: boom")
        guardrail.try_acquire("fp")
        guardrail.try_acquire("fp")

        summary = guardrail.drain_suppressed()
        assert len(summary) == 1
        assert summary[0].label == "SyncFailures: boom"
        assert summary[0].suppressed_count == 2
        assert summary[0].occurrence_count == 3

        assert guardrail.drain_suppressed() == []

    def test_window_limit_blocks_until_oldest_falls_out(self):
        clock = FakeClock()
        guardrail = Guardrail(
            timedelta(seconds=0),
            max_lifetime=0,
            max_per_window=2,
            rate_window=timedelta(hours=1),
            clock=clock,
        )

        assert guardrail.try_acquire("a") == GuardrailDecision.ACCEPTED
        clock.advance(minutes=10)
        assert guardrail.try_acquire("b") == GuardrailDecision.ACCEPTED
        assert guardrail.try_acquire("c") == GuardrailDecision.RATE_LIMITED

        # A los 60 minutos exactos el primero sale de la ventana
        clock.advance(minutes=50)
        assert guardrail.try_acquire("c") == GuardrailDecision.ACCEPTED

    def test_lifetime_limit_never_resets(self):
        clock = FakeClock()
        guardrail = Guardrail(timedelta(seconds=0), max_lifetime=2, max_per_window=0, clock=clock)

        assert guardrail.try_acquire("a") == GuardrailDecision.ACCEPTED
        assert guardrail.try_acquire("b") == GuardrailDecision.ACCEPTED
        clock.advance(days=30)
        assert guardrail.try_acquire("c") == GuardrailDecision.RATE_LIMITED
        assert guardrail.lifetime_limiter.count == 2

    def test_rate_limited_attempt_is_not_recorded_as_accepted(self):
        clock = FakeClock()
        guardrail = Guardrail(timedelta(minutes=5), max_lifetime=1, max_per_window=0, clock=clock)

        guardrail.try_acquire("a")
        assert guardrail.try_acquire("b") == GuardrailDecision.RATE_LIMITED
        # "b" nunca fue aceptado: no queda en ventana de dedup
        assert guardrail.dedup.get("b").last_accepted is None


class TestSlidingWindowRateLimiter:

    def test_non_positive_max_is_unlimited(self):
        limiter = SlidingWindowRateLimiter(0, timedelta(minutes=1))
        for _ in range(100):
            limiter.record()
        assert limiter.is_limited() is False
