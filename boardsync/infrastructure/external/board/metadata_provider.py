"""
Proveedor de metadata del board con cache.

Reglas de cache:
- Tipos de columna y sets de labels se cachean sin expiracion tras un
  fetch exitoso (el esquema remoto cambia muy poco).
- Los fallos nunca se cachean: el proximo acceso vuelve a consultar.
- Un error de infraestructura (auth, red, respuesta invalida) se propaga
  como SchemaMetadataUnavailableError; nunca se devuelve un set vacio.
- Una columna de labels sin labels legibles tambien es una falla: no se
  cachea nada del board y el proximo acceso vuelve a consultar.
"""

from __future__ import annotations

from typing import Optional

import httpx
from loguru import logger

from boardsync.shared.exceptions.reconciliation import SchemaMetadataUnavailableError

from .board_client import BoardApiError, BoardClient
from .types import (
    DROPDOWN_COLUMN_TYPES,
    STATUS_COLUMN_TYPES,
    BoardColumn,
    dropdown_labels,
    status_labels,
)


class BoardMetadataProvider:
    """Tipos de columna y labels permitidos, cacheados por (board, columna)."""

    def __init__(self, client: BoardClient) -> None:
        self._client = client
        self._columns: dict[tuple[int, str], BoardColumn] = {}
        self._labels: dict[tuple[int, str], frozenset[str]] = {}

    async def _fetch_board(self, board_id: int, column_id: str) -> None:
        try:
            columns = await self._client.get_columns(board_id)
        except (BoardApiError, httpx.HTTPError) as e:
            logger.error(
                f"No se pudo obtener metadata del board {board_id} (columna {column_id}): {e}"
            )
            raise SchemaMetadataUnavailableError(board_id, column_id, str(e)) from e

        for col in columns:
            self._columns[(board_id, col.id)] = col
        logger.debug(f"Metadata del board {board_id} cacheada: {len(columns)} columnas")

    async def get_column(self, board_id: int, column_id: str) -> Optional[BoardColumn]:
        key = (board_id, column_id)
        if key not in self._columns:
            await self._fetch_board(board_id, column_id)
        return self._columns.get(key)

    async def get_column_type(self, board_id: int, column_id: str) -> Optional[str]:
        """Tipo de la columna o None si la columna no existe en el board."""
        column = await self.get_column(board_id, column_id)
        if column is None or not column.type:
            return None
        return column.type

    async def get_allowed_labels(self, board_id: int, column_id: str) -> frozenset[str]:
        """
        Labels permitidos usando el accessor correcto segun el tipo detectado
        (status: dict de labels, dropdown: lista de {id, name}).

        Raises:
            SchemaMetadataUnavailableError: error de infraestructura.
            ValueError: la columna no existe o su tipo no tiene labels.
        """
        key = (board_id, column_id)
        cached = self._labels.get(key)
        if cached is not None:
            return cached

        column = await self.get_column(board_id, column_id)
        if column is None:
            raise ValueError(f"Columna {column_id} no existe en el board {board_id}")

        if column.type in STATUS_COLUMN_TYPES:
            labels = frozenset(status_labels(column.settings))
        elif column.type in DROPDOWN_COLUMN_TYPES:
            labels = frozenset(dropdown_labels(column.settings))
        else:
            raise ValueError(
                f"Columna {column_id} de tipo '{column.type}' no tiene set de labels"
            )

        if not labels:
            # settings_str ausente o ilegible: se trata como falla de metadata
            self._forget_board(board_id)
            logger.error(f"Columna {column_id} del board {board_id} sin labels legibles en settings_str")
            raise SchemaMetadataUnavailableError(board_id, column_id, "settings_str sin labels")

        self._labels[key] = labels
        return labels

    def _forget_board(self, board_id: int) -> None:
        """Descarta la metadata cacheada de un board para forzar un nuevo fetch."""
        for cache in (self._columns, self._labels):
            for key in [k for k in cache if k[0] == board_id]:
                del cache[key]
