"""
Tests del contrato HTTP de los endpoints de sincronizacion.

El worker y el repositorio se reemplazan via dependency_overrides; el
startup (DB, scheduler) no corre con ASGITransport.
"""
from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from boardsync.api.v1.dependencies.repository_deps import get_sync_audit_repository
from boardsync.api.v1.dependencies.use_case_deps import get_sync_worker
from boardsync.application.dto.sync_dto import SyncRunSummaryDTO
from boardsync.shared.exceptions.reconciliation import RunLockUnavailableError

STARTED = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_worker() -> SimpleNamespace:
    summary = SyncRunSummaryDTO(run_id="abc", status="success", started_at=STARTED, created=2)
    return SimpleNamespace(run_once=AsyncMock(return_value=summary))


@pytest.fixture
def app_with_mock(mock_worker):
    from main import create_application
    app = create_application()
    app.dependency_overrides[get_sync_worker] = lambda: mock_worker
    yield app
    app.dependency_overrides.clear()


async def _post(app, path, **kwargs):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post(path, **kwargs)


@pytest.mark.asyncio
async def test_manual_run_returns_summary(app_with_mock, mock_worker) -> None:
    response = await _post(app_with_mock, "/api/v1/sync/run", json={"dry_run": True, "max_items": 5})

    assert response.status_code == 200
    assert response.json()["created"] == 2
    mock_worker.run_once.assert_awaited_once_with(dry_run=True, max_items=5, raise_errors=True)


@pytest.mark.asyncio
async def test_manual_run_without_body_uses_settings(app_with_mock, mock_worker) -> None:
    response = await _post(app_with_mock, "/api/v1/sync/run")

    assert response.status_code == 200
    mock_worker.run_once.assert_awaited_once_with(dry_run=None, max_items=None, raise_errors=True)


@pytest.mark.asyncio
async def test_busy_lock_returns_409(app_with_mock, mock_worker) -> None:
    mock_worker.run_once.side_effect = RunLockUnavailableError("reconciliation", "host-a")

    response = await _post(app_with_mock, "/api/v1/sync/run")

    assert response.status_code == 409
    assert response.json()["error"] == "RUN_LOCK_UNAVAILABLE"


@pytest.mark.asyncio
async def test_negative_max_items_is_rejected(app_with_mock) -> None:
    response = await _post(app_with_mock, "/api/v1/sync/run", json={"max_items": -1})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_runs(app_with_mock) -> None:
    run = SimpleNamespace(
        run_id="abc",
        started_at=STARTED,
        finished_at=STARTED,
        status="success",
        created=1,
        updated=0,
        skipped=3,
        failed=0,
        total=4,
        duration_ms=120,
        watermark_used=None,
        error=None,
    )
    repo = SimpleNamespace(get_recent_runs=AsyncMock(return_value=[run]))
    app_with_mock.dependency_overrides[get_sync_audit_repository] = lambda: repo

    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/sync/runs", params={"limit": 5})

    assert response.status_code == 200
    assert response.json()[0]["total"] == 4
    repo.get_recent_runs.assert_awaited_once_with(5)


@pytest.mark.asyncio
async def test_worker_missing_returns_503() -> None:
    from main import create_application
    app = create_application()

    response = await _post(app, "/api/v1/sync/run")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_list_failures(app_with_mock) -> None:
    failure = SimpleNamespace(
        run_id="abc",
        natural_key=7,
        display_key="A-7",
        board_id=1001,
        operation="create",
        error_type="CriticalFieldValidationError",
        error_message="label invalido",
        retry_attempts=0,
        created_at=STARTED,
    )
    repo = SimpleNamespace(list_unresolved_failures=AsyncMock(return_value=[failure]))
    app_with_mock.dependency_overrides[get_sync_audit_repository] = lambda: repo

    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/sync/failures")

    assert response.status_code == 200
    assert response.json()[0]["natural_key"] == 7
    repo.list_unresolved_failures.assert_awaited_once_with(100)


@pytest.mark.asyncio
async def test_lifespan_runs_startup_and_shutdown(monkeypatch) -> None:
    from boardsync.core import events
    from main import create_application

    calls = []

    def _handler(name):
        def factory(app):
            async def handler():
                calls.append(name)
            return handler
        return factory

    monkeypatch.setattr(events, "startup_handler", _handler("startup"))
    monkeypatch.setattr(events, "shutdown_handler", _handler("shutdown"))
    app = create_application()

    async with app.router.lifespan_context(app):
        assert calls == ["startup"]

    assert calls == ["startup", "shutdown"]
