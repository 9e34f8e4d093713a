"""
Tests unitarios del gate de actualizacion parcial de audiencias.

Verifica el orden fijo de pasos, el status neutral y la regla de fecha
(juez y ciudad efectiva requeridos).
"""
from datetime import datetime, timedelta, timezone

from boardsync.application.services.hearing_gate import (
    STEP_UPDATE_CITY,
    STEP_UPDATE_HEARING_DATE,
    STEP_UPDATE_JUDGE,
    compute_steps,
    effective_city,
)
from boardsync.application.services.hearing_selector import pick_nearest_upcoming
from boardsync.domain.entities.records import HearingSnapshotRecord, HearingSource

START = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def _hearing(**overrides):
    values = dict(
        natural_key=1,
        start_at=START,
        meet_status=0,
        judge_name="Judge Dredd",
        city="Haifa",
        court_name="Magistrate Court",
    )
    values.update(overrides)
    return HearingSource(**values)


def _snapshot(**overrides):
    values = dict(
        natural_key=1,
        board_id=1001,
        remote_item_id=500,
        start_at=START,
        meet_status=0,
        judge_name="Judge Dredd",
        city="Haifa",
    )
    values.update(overrides)
    return HearingSnapshotRecord(**values)


class TestComputeSteps:
    """Tests para compute_steps."""

    def test_first_sync_writes_judge_city_and_date(self):
        """Sin snapshot se escriben juez, ciudad y fecha."""
        decision = compute_steps(_hearing(), None)
        # Status 0 es el neutral: nunca se escribe
        assert decision.steps == (STEP_UPDATE_JUDGE, STEP_UPDATE_CITY, STEP_UPDATE_HEARING_DATE)
        assert decision.status_changed and not decision.status_allowed

    def test_nothing_changed_means_no_steps(self):
        assert compute_steps(_hearing(), _snapshot()).steps == ()

    def test_status_change_comes_before_judge(self):
        """El paso de status va antes que el de juez."""
        decision = compute_steps(_hearing(meet_status=2, judge_name="Other"), _snapshot())
        assert decision.steps == ("SetStatus_הועבר", STEP_UPDATE_JUDGE)

    def test_cancelled_hearing_only_sets_status(self):
        """Audiencia cancelada: juez, ciudad y fecha quedan como estan."""
        decision = compute_steps(
            _hearing(meet_status=1, judge_name="Other", city="Eilat", start_at=START + timedelta(days=1)),
            _snapshot(),
        )
        assert decision.steps == ("SetStatus_מבוטל",)
        assert decision.date_changed and not decision.date_allowed

        # Ya marcada como cancelada: no hay nada que escribir
        assert compute_steps(_hearing(meet_status=1, judge_name="Other"), _snapshot(meet_status=1)).steps == ()

    def test_status_back_to_neutral_is_not_written(self):
        decision = compute_steps(_hearing(meet_status=0), _snapshot(meet_status=2))
        assert decision.steps == ()

    def test_date_change_blocked_without_judge(self):
        """Sin juez la fecha no se escribe aunque haya cambiado."""
        decision = compute_steps(_hearing(judge_name="  ", start_at=START + timedelta(days=1)), _snapshot())
        assert STEP_UPDATE_HEARING_DATE not in decision.steps
        assert decision.date_changed and not decision.date_allowed
        # Un juez vacio tampoco se escribe
        assert STEP_UPDATE_JUDGE not in decision.steps

    def test_same_instant_in_other_timezone_is_not_a_change(self):
        naive = START.replace(tzinfo=None)
        assert compute_steps(_hearing(), _snapshot(start_at=naive)).steps == ()


class TestEffectiveCity:
    """Tests para la ciudad efectiva (ciudad o tribunal)."""

    def test_city_falls_back_to_court_before_comparing(self):
        hearing = _hearing(city="", start_at=START + timedelta(hours=2))
        assert effective_city(hearing) == "Magistrate Court"

        decision = compute_steps(hearing, _snapshot(city="Magistrate Court"))
        assert decision.steps == (STEP_UPDATE_HEARING_DATE,)


def test_pick_nearest_upcoming_per_key():
    now = datetime(2024, 4, 1, tzinfo=timezone.utc)
    past = _hearing(start_at=now - timedelta(days=1))
    later = _hearing(start_at=now + timedelta(days=10))
    sooner = _hearing(start_at=now + timedelta(days=2))
    other_key_past = _hearing(natural_key=2, start_at=now - timedelta(days=3))
    no_date = _hearing(natural_key=3, start_at=None)

    nearest = pick_nearest_upcoming([past, later, sooner, other_key_past, no_date], now)

    assert nearest == {1: sooner}
