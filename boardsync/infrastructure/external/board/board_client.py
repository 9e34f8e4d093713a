"""
Cliente mínimo de la API GraphQL del board (sin SDKs externos).

Requisitos cubiertos:
- httpx (async)
- create / update de nombre / update de columnas
- busqueda de item por valor de columna (display key)
- metadata de columnas (tipo + settings_str)
- errores estructurados con contexto (operacion, board, item, columnas)

No reintenta: la politica de reintento transitorio vive en
`boardsync.application.services.transient_retry`.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
from loguru import logger

from .types import BoardColumn, BoardCredentials, parse_settings_str


# Codigos de error del board considerados transitorios
TRANSIENT_ERROR_CODES = frozenset({
    "RATE_LIMIT_EXCEEDED",
    "RATE_LIMIT",
    "ComplexityException",
    "COMPLEXITY_BUDGET_EXHAUSTED",
    "INTERNAL_SERVER_ERROR",
})

COLUMN_VALUES_SNIPPET_LENGTH = 500


class BoardApiError(RuntimeError):
    """Error de integración con el board remoto."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        board_id: Optional[int] = None,
        item_id: Optional[int] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        raw_errors: Optional[str] = None,
        column_values: Optional[dict[str, Any]] = None,
    ) -> None:
        self.operation = operation
        self.board_id = board_id
        self.item_id = item_id
        self.status_code = status_code
        self.error_code = error_code
        self.raw_errors = raw_errors or ""
        snippet = json.dumps(column_values, ensure_ascii=False) if column_values else ""
        self.column_values_snippet = snippet[:COLUMN_VALUES_SNIPPET_LENGTH]
        super().__init__(
            f"{message} (operation={operation}, board={board_id}, item={item_id}, "
            f"status={status_code}, code={error_code})"
        )

    @property
    def is_inactive_item(self) -> bool:
        """El item esta archivado/borrado en el board: reintentar no sirve."""
        raw = self.raw_errors.lower()
        return "inactiveitems" in raw or "inactive item" in raw or "item is inactive" in raw

    @property
    def is_transient(self) -> bool:
        """429, 5xx o codigos de rate limit / complejidad."""
        if self.is_inactive_item:
            return False
        if self.status_code is not None and (self.status_code == 429 or self.status_code >= 500):
            return True
        return self.error_code in TRANSIENT_ERROR_CODES


def _extract_error_code(payload: dict[str, Any]) -> Optional[str]:
    """Obtiene el codigo de error de cualquiera de los dos formatos del board."""
    if payload.get("error_code"):
        return str(payload["error_code"])
    for err in payload.get("errors") or []:
        if isinstance(err, dict):
            code = (err.get("extensions") or {}).get("code")
            if code:
                return str(code)
    return None


class BoardClient:
    """
    Cliente HTTP del board. Cada operacion es un POST GraphQL.

    Importante:
    - Los ids del board/items se envian como string (tipo ID! de GraphQL).
    - column_values se serializa a JSON string (tipo JSON! del board).
    """

    def __init__(
        self,
        credentials: BoardCredentials,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._creds = credentials
        self._timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "BoardClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    async def create_item(
        self,
        board_id: int,
        group_id: str,
        item_name: str,
        column_values: dict[str, Any],
    ) -> int:
        query = (
            "mutation ($boardId: ID!, $groupId: String!, $itemName: String!, $columnVals: JSON!) {"
            " create_item (board_id: $boardId, group_id: $groupId, item_name: $itemName,"
            " column_values: $columnVals) { id } }"
        )
        variables = {
            "boardId": str(board_id),
            "groupId": group_id,
            "itemName": item_name,
            "columnVals": json.dumps(column_values, ensure_ascii=False),
        }
        data = await self._request_json(
            query,
            variables,
            operation="create_item",
            board_id=board_id,
            column_values=column_values,
        )
        created = data.get("create_item") or {}
        raw_id = created.get("id")
        if not raw_id:
            raise BoardApiError(
                "El board devolvio un create_item sin 'id'",
                operation="create_item",
                board_id=board_id,
                raw_errors=json.dumps(data, ensure_ascii=False),
            )
        return int(raw_id)

    async def update_item_name(self, board_id: int, item_id: int, name: str) -> None:
        # El board usa la columna "name" para el nombre del item
        query = (
            "mutation ($itemId: ID!, $boardId: ID!, $columnId: String!, $value: String!) {"
            " change_simple_column_value (item_id: $itemId, board_id: $boardId,"
            " column_id: $columnId, value: $value) { id } }"
        )
        variables = {
            "itemId": str(item_id),
            "boardId": str(board_id),
            "columnId": "name",
            "value": name,
        }
        data = await self._request_json(
            query, variables, operation="update_item_name", board_id=board_id, item_id=item_id
        )
        self._require_id(data, "change_simple_column_value", "update_item_name", board_id, item_id)

    async def update_item_fields(
        self,
        board_id: int,
        item_id: int,
        column_values: dict[str, Any],
    ) -> None:
        query = (
            "mutation ($itemId: ID!, $boardId: ID!, $columnVals: JSON!) {"
            " change_multiple_column_values (item_id: $itemId, board_id: $boardId,"
            " column_values: $columnVals) { id } }"
        )
        variables = {
            "itemId": str(item_id),
            "boardId": str(board_id),
            "columnVals": json.dumps(column_values, ensure_ascii=False),
        }
        data = await self._request_json(
            query,
            variables,
            operation="update_item_fields",
            board_id=board_id,
            item_id=item_id,
            column_values=column_values,
        )
        self._require_id(data, "change_multiple_column_values", "update_item_fields", board_id, item_id)

    async def find_item_id_by_column_value(
        self,
        board_id: int,
        column_id: str,
        value: str,
    ) -> Optional[int]:
        """
        Busca el item que lleva `value` en la columna indicada.

        Retorna None si no hay ninguno o si hay mas de uno (ambiguo).
        """
        query = (
            "query ($boardId: ID!, $columnId: String!, $value: String!) {"
            " items_page_by_column_values (limit: 2, board_id: $boardId,"
            " columns: [{column_id: $columnId, column_values: [$value]}]) { items { id } } }"
        )
        variables = {"boardId": str(board_id), "columnId": column_id, "value": value}
        data = await self._request_json(
            query, variables, operation="find_item_by_column_value", board_id=board_id
        )
        items = (data.get("items_page_by_column_values") or {}).get("items") or []
        if not items:
            return None
        if len(items) > 1:
            logger.warning(
                f"Busqueda ambigua en board {board_id}: columna {column_id}='{value}' "
                f"coincide con {len(items)} items; se ignora"
            )
            return None
        return int(items[0]["id"])

    async def get_columns(self, board_id: int) -> list[BoardColumn]:
        query = (
            "query ($boardIds: [ID!]) {"
            " boards (ids: $boardIds) { id columns { id title type settings_str } } }"
        )
        variables = {"boardIds": [str(board_id)]}
        data = await self._request_json(query, variables, operation="get_columns", board_id=board_id)
        boards = data.get("boards") or []
        if not boards:
            raise BoardApiError(
                f"Board {board_id} no encontrado en la respuesta de metadata",
                operation="get_columns",
                board_id=board_id,
                raw_errors=json.dumps(data, ensure_ascii=False),
            )
        columns = []
        for col in boards[0].get("columns") or []:
            if not col.get("id"):
                continue
            columns.append(
                BoardColumn(
                    id=str(col["id"]),
                    type=str(col.get("type") or ""),
                    title=str(col.get("title") or ""),
                    settings=parse_settings_str(col.get("settings_str")),
                )
            )
        return columns

    @staticmethod
    def _require_id(
        data: dict[str, Any],
        key: str,
        operation: str,
        board_id: int,
        item_id: int,
    ) -> None:
        if not (data.get(key) or {}).get("id"):
            raise BoardApiError(
                f"Respuesta inesperada del board: falta {key}.id",
                operation=operation,
                board_id=board_id,
                item_id=item_id,
                raw_errors=json.dumps(data, ensure_ascii=False),
            )

    async def _request_json(
        self,
        query: str,
        variables: dict[str, Any],
        *,
        operation: str,
        board_id: Optional[int] = None,
        item_id: Optional[int] = None,
        column_values: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        POST GraphQL y extraccion de `data`.

        Estrategia:
        - HTTP no 2xx: BoardApiError con status_code (429/5xx => transitorio).
        - `errors` / `error_code` en el cuerpo: BoardApiError con el codigo.
        - Errores de transporte (timeout, conexion) se propagan como httpx.HTTPError.
        """
        headers = {
            "Authorization": self._creds.token,
            "Content-Type": "application/json",
            "API-Version": "2024-01",
        }
        resp = await self._http().post(
            self._creds.api_url,
            json={"query": query, "variables": variables},
            headers=headers,
        )

        payload: dict[str, Any] = {}
        try:
            payload = resp.json()
        except ValueError:
            payload = {}

        if not (200 <= resp.status_code < 300):
            raise BoardApiError(
                f"El board respondio {resp.status_code}",
                operation=operation,
                board_id=board_id,
                item_id=item_id,
                status_code=resp.status_code,
                error_code=_extract_error_code(payload),
                raw_errors=resp.text[:2000],
                column_values=column_values,
            )

        if payload.get("errors") or payload.get("error_code"):
            raise BoardApiError(
                "El board devolvio errores GraphQL",
                operation=operation,
                board_id=board_id,
                item_id=item_id,
                status_code=resp.status_code,
                error_code=_extract_error_code(payload),
                raw_errors=json.dumps(
                    payload.get("errors") or payload.get("error_message") or payload,
                    ensure_ascii=False,
                ),
                column_values=column_values,
            )

        return payload.get("data") or {}
