"""
Opciones de una corrida de sincronizacion.

Se arman desde Settings y admiten overrides por corrida (endpoint manual,
script CLI, tests).
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import FrozenSet, Optional

from boardsync.core.config import Settings, parse_allowed_keys


@dataclass(frozen=True)
class HearingColumns:
    status_column_id: str
    judge_column_id: str
    city_column_id: str
    date_column_id: str
    hour_column_id: str = ""


@dataclass(frozen=True)
class SyncOptions:
    board_id: int
    group_id: str
    hearing_columns: HearingColumns
    dry_run: bool = False
    test_mode: bool = False
    max_items: int = 0
    allowed_keys: FrozenSet[int] = field(default_factory=frozenset)
    cutoff_date: Optional[date] = None
    cooling_business_days: int = 0
    watermark_overlap_minutes: int = 2
    first_run_lookback_minutes: int = 5
    hearings_enabled: bool = True
    run_lock_ttl_minutes: int = 30
    retry_delay_seconds: float = 0.1
    write_dedup_window_seconds: int = 60
    write_max_lifetime: int = 500
    write_max_per_minute: int = 60

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "SyncOptions":
        options = cls(
            board_id=settings.BOARD_ID,
            group_id=settings.BOARD_GROUP_ID,
            hearing_columns=HearingColumns(
                status_column_id=settings.HEARING_STATUS_COLUMN_ID,
                judge_column_id=settings.JUDGE_COLUMN_ID,
                city_column_id=settings.CITY_COLUMN_ID,
                date_column_id=settings.HEARING_DATE_COLUMN_ID,
                hour_column_id=settings.HEARING_HOUR_COLUMN_ID,
            ),
            dry_run=settings.SYNC_DRY_RUN,
            test_mode=settings.SYNC_TEST_MODE,
            max_items=settings.SYNC_MAX_ITEMS_PER_RUN,
            allowed_keys=frozenset(parse_allowed_keys(settings.SYNC_ALLOWED_KEYS)),
            cutoff_date=settings.SYNC_CUTOFF_DATE,
            cooling_business_days=settings.SYNC_COOLING_BUSINESS_DAYS,
            watermark_overlap_minutes=settings.SYNC_WATERMARK_OVERLAP_MINUTES,
            first_run_lookback_minutes=settings.SYNC_FIRST_RUN_LOOKBACK_MINUTES,
            hearings_enabled=settings.SYNC_HEARINGS_ENABLED,
            run_lock_ttl_minutes=settings.SYNC_RUN_LOCK_TTL_MINUTES,
            retry_delay_seconds=settings.SYNC_TRANSIENT_RETRY_DELAY_SECONDS,
            write_dedup_window_seconds=settings.WRITE_DEDUP_WINDOW_SECONDS,
            write_max_lifetime=settings.WRITE_MAX_LIFETIME,
            write_max_per_minute=settings.WRITE_MAX_PER_MINUTE,
        )
        # None = sin override
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(options, **overrides) if overrides else options
