from datetime import datetime, timezone

from boardsync.application.services.column_values import (
    build_item_name,
    is_test_compatible,
    map_status_index,
)
from boardsync.application.services.upsert_planner import PlanKind, plan
from boardsync.domain.entities.records import MappingRecord
from boardsync.shared.utils.datetime_utils import to_watermark


def _mapping(watermark="2024-01-01T00:00:00Z", checksum="A-1", is_test=False):
    return MappingRecord(
        id=1,
        natural_key=1,
        display_key="A-1",
        container_scope=1001,
        remote_item_id=500,
        version_watermark=watermark,
        checksum=checksum,
        is_test=is_test,
    )


def test_watermark_format_is_utc_with_z_suffix():
    value = to_watermark(datetime(2024, 1, 1, 2, 0, tzinfo=timezone.utc))
    assert value == "2024-01-01T02:00:00Z"
    # naive se asume UTC (SQLite)
    assert to_watermark(datetime(2024, 1, 1, 2, 0)) == value


def test_create_when_no_mapping(record_factory):
    result = plan(None, record_factory(1, "A-1"), "A-1")
    assert result.kind == PlanKind.CREATE
    assert result.watermark == "2024-01-01T00:00:00Z"


def test_skip_when_nothing_changed(record_factory):
    result = plan(_mapping(), record_factory(1, "A-1"), "A-1")
    assert result.kind == PlanKind.SKIP


def test_update_name_only(record_factory):
    result = plan(_mapping(checksum="old"), record_factory(1, "A-1"), "A-1")
    assert result.kind == PlanKind.UPDATE
    assert result.name_changed and not result.data_changed


def test_update_data_only(record_factory):
    record = record_factory(1, "A-1", modified_at=datetime(2024, 2, 1, tzinfo=timezone.utc))
    result = plan(_mapping(), record, "A-1")
    assert result.kind == PlanKind.UPDATE
    assert result.data_changed and not result.name_changed
    assert result.watermark == "2024-02-01T00:00:00Z"


def test_item_name_test_prefix_is_idempotent(record_factory):
    assert build_item_name(record_factory(1, "A-1"), test_mode=False) == ("A-1", False)
    assert build_item_name(record_factory(1, "A-1"), test_mode=True) == ("[TEST] A-1", True)
    assert build_item_name(record_factory(1, "[TEST] A-1"), test_mode=True) == ("[TEST] A-1", False)


def test_item_name_falls_back_to_case_name_and_key(record_factory):
    assert build_item_name(record_factory(9, None, case_name="Doe v. Roe"), False)[0] == "Doe v. Roe"
    assert build_item_name(record_factory(9, None), False)[0] == "9"


def test_status_index_mapping():
    assert map_status_index("Closed") == 1
    assert map_status_index("תיק סגור") == 1
    assert map_status_index("בעבודה") == 0
    assert map_status_index("Stuck") == 2
    assert map_status_index("") == 5
    assert map_status_index("pending") == 5


def test_test_compatibility_by_flag_or_name_prefix():
    assert is_test_compatible(_mapping(is_test=True))
    assert is_test_compatible(_mapping(checksum="[TEST] A-1"))
    assert not is_test_compatible(_mapping())
