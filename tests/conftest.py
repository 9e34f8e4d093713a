"""
Configuración de fixtures para pytest.
"""
import itertools
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import boardsync.infrastructure.database  # noqa: F401  (registra los modelos)
from boardsync.application.use_cases.sync_options import HearingColumns, SyncOptions
from boardsync.domain.entities.records import HearingSource, SourceRecord
from boardsync.domain.repositories.source_repository import ISourceRepository
from boardsync.infrastructure.database.session import Base
from boardsync.infrastructure.external.board.types import BoardColumn
from boardsync.shared.utils.audit_logger import SyncAuditLogger


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_BOARD_ID = 1001


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Fixture que proporciona una sesión de base de datos para tests.
    Crea una base de datos en memoria para cada test.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(autouse=True)
def audit_log_dirs(tmp_path, monkeypatch):
    """Los logs por corrida van a un directorio temporal."""
    run_dir = tmp_path / "run_logs"
    run_dir.mkdir()
    monkeypatch.setattr(SyncAuditLogger, "SYNC_LOG_DIR", tmp_path / "sync_logs")
    monkeypatch.setattr(SyncAuditLogger, "RUN_LOG_DIR", run_dir)
    monkeypatch.setattr(SyncAuditLogger, "_initialized", True)
    return run_dir


def default_board_columns() -> List[BoardColumn]:
    return [
        BoardColumn(id="text_case_number", type="text"),
        BoardColumn(
            id="color_case_status",
            type="status",
            settings={"labels": {"0": "בעבודה", "1": "סגור", "2": "תקוע", "5": "חדש"}},
        ),
        BoardColumn(
            id="dropdown_client",
            type="dropdown",
            settings={"labels": [{"id": 1, "name": "Acme"}, {"id": 2, "name": "Globex"}]},
        ),
        BoardColumn(
            id="color_hearing_status",
            type="status",
            settings={"labels": {"0": "פעיל", "1": "מבוטל", "2": "הועבר"}},
        ),
        BoardColumn(id="long_text_notes", type="long_text"),
        BoardColumn(id="date_opened", type="date"),
        BoardColumn(id="text_judge", type="text"),
        BoardColumn(id="text_city", type="text"),
        BoardColumn(id="date_hearing", type="date"),
        BoardColumn(id="hour_hearing", type="hour"),
    ]


class FakeBoard:
    """Board en memoria: registra cada llamada y asigna ids incrementales."""

    def __init__(self, columns: Optional[List[BoardColumn]] = None):
        self.columns = columns if columns is not None else default_board_columns()
        self.items: Dict[int, dict] = {}
        self.calls: List[tuple] = []
        self.lookup: Dict[str, int] = {}
        self.get_columns_calls = 0
        self._ids = itertools.count(5000)

    async def create_item(self, board_id, group_id, item_name, column_values):
        item_id = next(self._ids)
        self.items[item_id] = {"name": item_name, "values": dict(column_values)}
        self.calls.append(("create_item", board_id, item_id, item_name, column_values))
        return item_id

    async def update_item_name(self, board_id, item_id, name):
        self.items.setdefault(item_id, {"values": {}})["name"] = name
        self.calls.append(("update_item_name", board_id, item_id, name))

    async def update_item_fields(self, board_id, item_id, column_values):
        self.items.setdefault(item_id, {"values": {}})["values"].update(column_values)
        self.calls.append(("update_item_fields", board_id, item_id, column_values))

    async def find_item_id_by_column_value(self, board_id, column_id, value):
        self.calls.append(("find_item", board_id, column_id, value))
        return self.lookup.get(value)

    async def get_columns(self, board_id):
        self.get_columns_calls += 1
        return list(self.columns)

    def calls_named(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def fake_board() -> FakeBoard:
    return FakeBoard()


@pytest.fixture
def sync_options() -> SyncOptions:
    """Opciones de corrida para tests: sin audiencias ni esperas."""
    return SyncOptions(
        board_id=TEST_BOARD_ID,
        group_id="topics",
        hearing_columns=HearingColumns(
            status_column_id="color_hearing_status",
            judge_column_id="text_judge",
            city_column_id="text_city",
            date_column_id="date_hearing",
            hour_column_id="hour_hearing",
        ),
        hearings_enabled=False,
        retry_delay_seconds=0,
    )


class FakeSource(ISourceRepository):
    """Sistema origen en memoria; el change feed devuelve todo lo cargado."""

    def __init__(self):
        self.records: Dict[int, SourceRecord] = {}
        self.hearings: List[HearingSource] = []
        self.feed_error: Optional[Exception] = None

    def add(self, record: SourceRecord) -> SourceRecord:
        self.records[record.natural_key] = record
        return record

    async def get_records_by_natural_keys(self, keys):
        return [self.records[k] for k in sorted(set(keys)) if k in self.records]

    async def get_records_created_since(self, since):
        return [
            r for k, r in sorted(self.records.items())
            if r.created_at is not None and r.created_at >= since
        ]

    async def get_changed_keys_since(self, since):
        if self.feed_error is not None:
            raise self.feed_error
        return sorted(self.records)

    async def get_hearings_by_natural_keys(self, keys):
        wanted = set(keys)
        return [h for h in self.hearings if h.natural_key in wanted]


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


def make_record(
    natural_key: int,
    case_number: Optional[str] = None,
    modified_at: Optional[datetime] = None,
    created_at: Optional[datetime] = None,
    **fields,
) -> SourceRecord:
    modified_at = modified_at or datetime(2024, 1, 1, tzinfo=timezone.utc)
    created_at = created_at or datetime(2023, 6, 1, tzinfo=timezone.utc)
    values = {"case_number": case_number, "created_at": created_at}
    values.update(fields)
    return SourceRecord(
        natural_key=natural_key,
        display_key=case_number,
        fields=values,
        modified_at=modified_at,
        created_at=created_at,
    )


@pytest.fixture
def record_factory():
    return make_record
