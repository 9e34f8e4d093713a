"""
Implementación SQL del repositorio del sistema origen.
Lee source_cases / source_hearings y los convierte a entidades del dominio.
"""
from datetime import datetime
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.domain.entities.records import HearingSource, SourceRecord
from boardsync.domain.repositories.source_repository import ISourceRepository
from boardsync.infrastructure.database.models import SourceCaseModel, SourceHearingModel
from boardsync.shared.utils.datetime_utils import ensure_utc


def _to_record(row: SourceCaseModel) -> SourceRecord:
    # Copia plana de campos; la semantica vive en el builder de columnas
    return SourceRecord(
        natural_key=row.natural_key,
        display_key=(row.case_number or "").strip() or None,
        fields={
            "case_number": row.case_number,
            "case_name": row.case_name,
            "client_name": row.client_name,
            "status_name": row.status_name,
            "notes": row.notes,
            "created_at": ensure_utc(row.created_at) if row.created_at else None,
        },
        modified_at=ensure_utc(row.modified_at),
        created_at=ensure_utc(row.created_at) if row.created_at else None,
    )


def _to_hearing(row: SourceHearingModel) -> HearingSource:
    return HearingSource(
        natural_key=row.natural_key,
        start_at=ensure_utc(row.start_at) if row.start_at else None,
        meet_status=row.meet_status,
        judge_name=row.judge_name,
        city=row.city,
        court_name=row.court_name,
    )


class SqlSourceRepository(ISourceRepository):
    """
    Repositorio de solo lectura sobre las tablas origen.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_records_by_natural_keys(self, keys: Iterable[int]) -> List[SourceRecord]:
        keys = list(keys)
        if not keys:
            return []
        query = (
            select(SourceCaseModel)
            .where(SourceCaseModel.natural_key.in_(keys))
            .order_by(SourceCaseModel.natural_key)
        )
        result = await self.db.execute(query)
        return [_to_record(r) for r in result.scalars().all()]

    async def get_records_created_since(self, since: datetime) -> List[SourceRecord]:
        query = (
            select(SourceCaseModel)
            .where(SourceCaseModel.created_at >= since)
            .order_by(SourceCaseModel.natural_key)
        )
        result = await self.db.execute(query)
        return [_to_record(r) for r in result.scalars().all()]

    async def get_changed_keys_since(self, since: datetime) -> List[int]:
        cases = await self.db.execute(
            select(SourceCaseModel.natural_key).where(SourceCaseModel.modified_at >= since)
        )
        hearings = await self.db.execute(
            select(SourceHearingModel.natural_key).where(SourceHearingModel.modified_at >= since)
        )
        keys = set(cases.scalars().all()) | set(hearings.scalars().all())
        return sorted(keys)

    async def get_hearings_by_natural_keys(self, keys: Iterable[int]) -> List[HearingSource]:
        keys = list(keys)
        if not keys:
            return []
        query = (
            select(SourceHearingModel)
            .where(SourceHearingModel.natural_key.in_(keys))
            .order_by(SourceHearingModel.natural_key, SourceHearingModel.start_at)
        )
        result = await self.db.execute(query)
        return [_to_hearing(r) for r in result.scalars().all()]
