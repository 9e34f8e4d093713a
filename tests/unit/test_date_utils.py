from datetime import date, datetime, timezone

from boardsync.shared.utils.date_utils import (
    add_business_days,
    cooling_period_elapsed,
    is_after_cutoff,
    is_business_day,
)


def test_friday_and_saturday_are_not_business_days():
    # Jueves 4 de enero de 2024
    assert is_business_day(date(2024, 1, 4))
    assert not is_business_day(date(2024, 1, 5))
    assert not is_business_day(date(2024, 1, 6))
    assert is_business_day(date(2024, 1, 7))


def test_thursday_plus_three_business_days_is_tuesday():
    # jue(1), dom(2), lun(3) -> martes
    assert add_business_days(date(2024, 1, 4), 3) == date(2024, 1, 9)


def test_opening_on_weekend_does_not_count():
    # Viernes: el conteo arranca el domingo
    assert add_business_days(date(2024, 1, 5), 1) == date(2024, 1, 8)


def test_zero_business_days_is_the_same_day():
    assert add_business_days(date(2024, 1, 4), 0) == date(2024, 1, 4)


def test_cooling_period_uses_source_local_date():
    # 22:30 UTC del miercoles ya es jueves en Israel
    created = datetime(2024, 1, 3, 22, 30, tzinfo=timezone.utc)
    monday = datetime(2024, 1, 8, 12, 0, tzinfo=timezone.utc)
    tuesday = datetime(2024, 1, 9, 12, 0, tzinfo=timezone.utc)

    assert not cooling_period_elapsed(created, 3, monday)
    assert cooling_period_elapsed(created, 3, tuesday)
    assert cooling_period_elapsed(created, 0, created)


def test_cutoff_filter():
    created = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
    assert is_after_cutoff(created, None)
    assert is_after_cutoff(created, date(2024, 1, 10))
    assert not is_after_cutoff(created, date(2024, 1, 11))
    assert not is_after_cutoff(None, date(2024, 1, 1))
