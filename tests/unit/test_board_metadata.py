import json

import httpx
import pytest

from boardsync.infrastructure.external.board.board_client import BoardApiError, BoardClient
from boardsync.infrastructure.external.board.metadata_provider import BoardMetadataProvider
from boardsync.infrastructure.external.board.types import BoardCredentials
from boardsync.shared.exceptions.reconciliation import SchemaMetadataUnavailableError


def _client(handler) -> BoardClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BoardClient(BoardCredentials(token="secret", api_url="https://board.test/v2"), client=http)


def _columns_payload():
    return {
        "data": {
            "boards": [
                {
                    "id": "1",
                    "columns": [
                        {
                            "id": "color_case_status",
                            "title": "Status",
                            "type": "status",
                            "settings_str": json.dumps({"labels": {"0": "חדש", "1": "סגור"}}),
                        },
                        {
                            "id": "dropdown_client",
                            "title": "Client",
                            "type": "dropdown",
                            "settings_str": json.dumps({"labels": [{"id": 1, "name": "Acme"}]}),
                        },
                        {"id": "text_judge", "title": "Judge", "type": "text", "settings_str": "{}"},
                    ],
                }
            ]
        }
    }


@pytest.mark.asyncio
async def test_labels_parsed_per_column_type_and_cached():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        return httpx.Response(200, json=_columns_payload())

    provider = BoardMetadataProvider(_client(handler))

    assert await provider.get_allowed_labels(1, "color_case_status") == frozenset({"חדש", "סגור"})
    assert await provider.get_allowed_labels(1, "dropdown_client") == frozenset({"Acme"})
    assert await provider.get_column_type(1, "text_judge") == "text"
    assert len(calls) == 1
    assert calls[0]["variables"] == {"boardIds": ["1"]}


@pytest.mark.asyncio
async def test_failures_are_not_cached():
    responses = [httpx.Response(503, text="unavailable"), httpx.Response(200, json=_columns_payload())]

    def handler(request):
        return responses.pop(0)

    provider = BoardMetadataProvider(_client(handler))

    with pytest.raises(SchemaMetadataUnavailableError) as exc_info:
        await provider.get_allowed_labels(1, "color_case_status")
    assert exc_info.value.board_id == 1

    assert await provider.get_allowed_labels(1, "color_case_status") == frozenset({"חדש", "סגור"})


@pytest.mark.asyncio
async def test_unreadable_label_settings_are_not_cached():
    broken = _columns_payload()
    broken["data"]["boards"][0]["columns"][0]["settings_str"] = None
    responses = [httpx.Response(200, json=broken), httpx.Response(200, json=_columns_payload())]
    calls = []

    def handler(request):
        calls.append(request)
        return responses.pop(0)

    provider = BoardMetadataProvider(_client(handler))

    # Un set vacio no se devuelve ni se cachea: es falla de metadata
    with pytest.raises(SchemaMetadataUnavailableError) as exc_info:
        await provider.get_allowed_labels(1, "color_case_status")
    assert exc_info.value.column_id == "color_case_status"

    assert await provider.get_allowed_labels(1, "color_case_status") == frozenset({"חדש", "סגור"})
    assert len(calls) == 2

@pytest.mark.asyncio
async def test_labels_of_text_column_raise_value_error():
    provider = BoardMetadataProvider(_client(lambda r: httpx.Response(200, json=_columns_payload())))
    with pytest.raises(ValueError):
        await provider.get_allowed_labels(1, "text_judge")


@pytest.mark.asyncio
async def test_create_item_sends_ids_as_strings_and_values_as_json():
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"create_item": {"id": "987"}}})

    client = _client(handler)
    item_id = await client.create_item(1, "topics", "A-1", {"text_case_number": "A-1"})

    assert item_id == 987
    variables = seen["body"]["variables"]
    assert variables["boardId"] == "1"
    assert json.loads(variables["columnVals"]) == {"text_case_number": "A-1"}
    assert seen["headers"]["Authorization"] == "secret"


@pytest.mark.asyncio
async def test_graphql_errors_carry_code_and_transience():
    def handler(request):
        return httpx.Response(
            200,
            json={"errors": [{"message": "slow down", "extensions": {"code": "RATE_LIMIT_EXCEEDED"}}]},
        )

    with pytest.raises(BoardApiError) as exc_info:
        await _client(handler).update_item_fields(1, 5, {"text_judge": "x"})
    err = exc_info.value
    assert err.error_code == "RATE_LIMIT_EXCEEDED"
    assert err.is_transient
    assert err.operation == "update_item_fields"
    assert err.item_id == 5


@pytest.mark.asyncio
async def test_inactive_item_is_never_transient():
    def handler(request):
        return httpx.Response(500, text='{"error": "InactiveItems"}')

    with pytest.raises(BoardApiError) as exc_info:
        await _client(handler).update_item_name(1, 5, "A-1")
    assert exc_info.value.is_inactive_item
    assert not exc_info.value.is_transient


@pytest.mark.asyncio
async def test_ambiguous_lookup_returns_none():
    def handler(request):
        return httpx.Response(
            200,
            json={"data": {"items_page_by_column_values": {"items": [{"id": "1"}, {"id": "2"}]}}},
        )

    assert await _client(handler).find_item_id_by_column_value(1, "text_case_number", "A-1") is None
