import pytest

from boardsync.application.services.resolver import Resolver
from boardsync.domain.entities.outcomes import FailureKind
from boardsync.infrastructure.external.board.board_client import BoardApiError
from boardsync.infrastructure.repositories.mapping_repository import MappingRepository

BOARD = 1001


def _resolver(db_session, board) -> Resolver:
    return Resolver(MappingRepository(db_session), board, "text_case_number", retry_delay_seconds=0)


async def _insert(repo, natural_key, display_key, remote_item_id, scope=BOARD):
    outcome = await repo.insert(
        natural_key=natural_key,
        display_key=display_key,
        scope=scope,
        remote_item_id=remote_item_id,
        version_watermark="2024-01-01T00:00:00Z",
        checksum=display_key or "",
    )
    assert outcome.is_ok


@pytest.mark.asyncio
async def test_mapping_found_by_display_key(db_session, fake_board, record_factory):
    repo = MappingRepository(db_session)
    await _insert(repo, 10, "A-10", 500)

    result = await _resolver(db_session, fake_board).resolve(record_factory(10, "A-10"), BOARD)

    assert result.outcome.is_ok
    assert result.mapping.remote_item_id == 500
    assert not result.healed
    assert fake_board.calls == []


@pytest.mark.asyncio
async def test_legacy_mapping_without_display_key_is_completed(db_session, fake_board, record_factory):
    repo = MappingRepository(db_session)
    await _insert(repo, 11, None, 501)

    result = await _resolver(db_session, fake_board).resolve(record_factory(11, "A-11"), BOARD)

    assert result.healed
    assert result.mapping.display_key == "A-11"
    assert result.mapping.remote_item_id == 501


@pytest.mark.asyncio
async def test_legacy_mapping_repointed_to_remote_item(db_session, fake_board, record_factory):
    repo = MappingRepository(db_session)
    await _insert(repo, 12, "OLD-12", 502)
    fake_board.lookup["A-12"] = 777

    result = await _resolver(db_session, fake_board).resolve(record_factory(12, "A-12"), BOARD)

    assert result.healed
    assert result.mapping.remote_item_id == 777
    assert result.mapping.display_key == "A-12"
    stored = await repo.get_by_natural_key(12)
    assert stored.remote_item_id == 777


@pytest.mark.asyncio
async def test_legacy_lookup_error_is_tolerated(db_session, fake_board, record_factory):
    repo = MappingRepository(db_session)
    await _insert(repo, 13, None, 503)

    async def failing_lookup(*args):
        raise BoardApiError("forbidden", operation="find_item_by_column_value", status_code=403)

    fake_board.find_item_id_by_column_value = failing_lookup

    result = await _resolver(db_session, fake_board).resolve(record_factory(13, "A-13"), BOARD)

    assert result.outcome.is_ok
    assert result.mapping.remote_item_id == 503
    assert not result.healed


@pytest.mark.asyncio
async def test_remote_item_adopted_when_no_mapping(db_session, fake_board, record_factory):
    fake_board.lookup["A-14"] = 888

    result = await _resolver(db_session, fake_board).resolve(record_factory(14, "A-14"), BOARD)

    assert result.outcome.is_ok
    assert result.healed
    assert result.mapping.remote_item_id == 888
    # Watermark y checksum vacios: el planner lo va a actualizar
    assert result.mapping.version_watermark == ""
    assert result.mapping.checksum == ""


@pytest.mark.asyncio
async def test_new_record_when_nothing_matches(db_session, fake_board, record_factory):
    result = await _resolver(db_session, fake_board).resolve(record_factory(15, "A-15"), BOARD)
    assert result.mapping is None
    assert result.outcome.is_ok


@pytest.mark.asyncio
async def test_remote_lookup_failure_without_mapping(db_session, fake_board, record_factory):
    async def failing_lookup(*args):
        raise BoardApiError("boom", operation="find_item_by_column_value", status_code=400)

    fake_board.find_item_id_by_column_value = failing_lookup

    result = await _resolver(db_session, fake_board).resolve(record_factory(16, "A-16"), BOARD)

    assert result.mapping is None
    assert result.outcome.is_failure
    assert result.outcome.failure_kind == FailureKind.REMOTE_LOOKUP


@pytest.mark.asyncio
async def test_duplicate_insert_is_a_race(db_session):
    repo = MappingRepository(db_session)
    await _insert(repo, 20, "A-20", 600)

    outcome = await repo.insert(
        natural_key=20,
        display_key="A-20",
        scope=BOARD,
        remote_item_id=601,
        version_watermark="",
        checksum="",
    )

    assert outcome.is_race
    # La sesion sigue usable despues del rollback
    mapping = await repo.get_by_natural_key(20)
    assert mapping.remote_item_id == 600
