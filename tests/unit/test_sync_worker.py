"""
Tests del SyncWorker sin scheduler: run_once con el caso de uso reemplazado.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest

from boardsync.application.dto.sync_dto import SyncRunSummaryDTO
from boardsync.core.config import settings
from boardsync.infrastructure.scheduler import sync_worker as sync_worker_module
from boardsync.infrastructure.scheduler.sync_worker import SyncWorker
from boardsync.shared.exceptions.reconciliation import RunLockUnavailableError


@asynccontextmanager
async def _session_factory():
    yield object()


class RecordingUseCases:
    """Reemplazo de ReconciliationUseCases que registra sus dependencias."""

    instances = []
    error = None

    def __init__(self, db, board, metadata, options=None, alerts=None, write_guardrail=None):
        self.metadata = metadata
        self.options = options
        self.write_guardrail = write_guardrail
        RecordingUseCases.instances.append(self)

    async def run_pass(self, cancel_event=None):
        if RecordingUseCases.error is not None:
            raise RecordingUseCases.error
        return SyncRunSummaryDTO(
            run_id=f"run{len(RecordingUseCases.instances)}",
            status="success",
            started_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
        )


@pytest.fixture
def recording_use_cases(monkeypatch):
    RecordingUseCases.instances = []
    RecordingUseCases.error = None
    monkeypatch.setattr(sync_worker_module, "ReconciliationUseCases", RecordingUseCases)
    return RecordingUseCases


class TestSyncWorkerRunOnce:
    """Tests para SyncWorker.run_once."""

    @pytest.mark.asyncio
    async def test_passes_share_write_guardrail_and_metadata(self, recording_use_cases):
        """Los topes de escritura y el cache de metadata son del proceso, no de la pasada."""
        worker = SyncWorker(settings, _session_factory, board=object())

        await worker.run_once()
        await worker.run_once(dry_run=True)

        first, second = recording_use_cases.instances
        assert first.write_guardrail is worker.write_guardrail
        assert second.write_guardrail is worker.write_guardrail
        assert first.metadata is second.metadata
        assert worker.write_guardrail.lifetime_limiter.max_actions == settings.WRITE_MAX_LIFETIME
        assert second.options.dry_run is True
        assert worker.last_summary.run_id == "run2"

    @pytest.mark.asyncio
    async def test_busy_lock_returns_none_for_scheduled_pass(self, recording_use_cases):
        recording_use_cases.error = RunLockUnavailableError("reconciliation", "host-a")
        worker = SyncWorker(settings, _session_factory, board=object())

        assert await worker.run_once() is None
        with pytest.raises(RunLockUnavailableError):
            await worker.run_once(raise_errors=True)
