import httpx
import pytest
from sqlalchemy.exc import OperationalError

from boardsync.application.services.transient_retry import is_transient_error, run_with_transient_retry
from boardsync.infrastructure.external.board.board_client import BoardApiError


def test_transient_classification():
    assert is_transient_error(BoardApiError("x", operation="op", status_code=429))
    assert is_transient_error(BoardApiError("x", operation="op", status_code=502))
    assert is_transient_error(BoardApiError("x", operation="op", error_code="ComplexityException"))
    assert is_transient_error(httpx.ConnectTimeout("timeout"))
    assert is_transient_error(OperationalError("stmt", {}, Exception("database is locked")))

    assert not is_transient_error(BoardApiError("x", operation="op", status_code=400))
    assert not is_transient_error(OperationalError("stmt", {}, Exception("syntax error")))
    assert not is_transient_error(ValueError("nope"))


@pytest.mark.asyncio
async def test_retries_once_on_transient_error():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise BoardApiError("busy", operation="op", status_code=503)
        return "ok"

    assert await run_with_transient_retry(flaky, "flaky", delay_seconds=0) == "ok"
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_second_transient_failure_propagates():
    attempts = []

    async def always_busy():
        attempts.append(1)
        raise BoardApiError("busy", operation="op", status_code=503)

    with pytest.raises(BoardApiError):
        await run_with_transient_retry(always_busy, "busy", delay_seconds=0)
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_non_transient_error_is_not_retried():
    attempts = []

    async def invalid():
        attempts.append(1)
        raise BoardApiError("bad", operation="op", status_code=400)

    with pytest.raises(BoardApiError):
        await run_with_transient_retry(invalid, "invalid", delay_seconds=0)
    assert len(attempts) == 1
