"""
Interfaz del repositorio del sistema origen.
Define el contrato que debe cumplir cualquier implementación.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List

from boardsync.domain.entities.records import HearingSource, SourceRecord


class ISourceRepository(ABC):
    """
    Interfaz de lectura del sistema origen.
    El servicio nunca escribe en el origen.
    """

    @abstractmethod
    async def get_records_by_natural_keys(self, keys: Iterable[int]) -> List[SourceRecord]:
        """
        Obtiene registros por natural key.

        Args:
            keys: Natural keys a buscar

        Returns:
            List[SourceRecord]: Registros encontrados (orden por natural key)
        """
        pass

    @abstractmethod
    async def get_records_created_since(self, since: datetime) -> List[SourceRecord]:
        """Obtiene registros creados desde `since` (inclusive)."""
        pass

    @abstractmethod
    async def get_changed_keys_since(self, since: datetime) -> List[int]:
        """
        Change feed: natural keys de registros (o sus audiencias)
        modificados desde `since` (inclusive).
        """
        pass

    @abstractmethod
    async def get_hearings_by_natural_keys(self, keys: Iterable[int]) -> List[HearingSource]:
        """Obtiene todas las audiencias de los registros indicados."""
        pass
