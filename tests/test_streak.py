"""
Tests for lobstersage/protocol/streak.py and lobstersage/protocol/cache.py

Tests daily streak counting and the local reputation cache.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from lobstersage.protocol.cache import LocalLedgerCache, PredictionResult
from lobstersage.protocol.streak import (
    ActivityAction,
    ActivityRecord,
    add_activity,
    compute_streak,
    utc_today,
)


# ============================================================================
# TEST DATA
# ============================================================================

TODAY = date(2025, 1, 15)
NOON_TODAY = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc).timestamp()
DAY_SECONDS = 86400

USER = "0xabcdef1234567890abcdef1234567890abcdef12"


def days_ago(n: int) -> ActivityRecord:
    """Activity record n days before TODAY."""
    day = TODAY - timedelta(days=n)
    ts = datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc).timestamp()
    return ActivityRecord(date=day, timestamp=ts)


class FakeClock:
    """Settable unix-time source."""

    def __init__(self, now: float = NOON_TODAY):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance_days(self, days: int) -> None:
        self.now += days * DAY_SECONDS


# ============================================================================
# STREAK TESTS
# ============================================================================

class TestComputeStreak:
    """Tests for compute_streak."""

    def test_empty(self):
        assert compute_streak([], today=TODAY) == 0

    def test_today_only(self):
        assert compute_streak([days_ago(0)], today=TODAY) == 1

    def test_today_and_yesterday(self):
        assert compute_streak([days_ago(0), days_ago(1)], today=TODAY) == 2

    def test_yesterday_only_keeps_streak(self):
        """Grace period: yesterday's activity still counts."""
        assert compute_streak([days_ago(1)], today=TODAY) == 1

    def test_yesterday_run_keeps_streak(self):
        records = [days_ago(1), days_ago(2), days_ago(3)]
        assert compute_streak(records, today=TODAY) == 3

    def test_two_days_ago_breaks_streak(self):
        assert compute_streak([days_ago(2), days_ago(3)], today=TODAY) == 0

    def test_gap_stops_count(self):
        records = [days_ago(0), days_ago(30)]
        assert compute_streak(records, today=TODAY) == 1

    def test_gap_in_middle(self):
        records = [days_ago(0), days_ago(1), days_ago(3), days_ago(4)]
        assert compute_streak(records, today=TODAY) == 2

    def test_unsorted_input(self):
        records = [days_ago(2), days_ago(0), days_ago(1)]
        assert compute_streak(records, today=TODAY) == 3

    def test_duplicate_days_counted_once(self):
        records = [days_ago(0), days_ago(0), days_ago(1)]
        assert compute_streak(records, today=TODAY) == 2

    def test_long_streak(self):
        records = [days_ago(i) for i in range(45)]
        assert compute_streak(records, today=TODAY) == 45

    def test_crosses_month_boundary(self):
        today = date(2025, 3, 1)
        records = [
            ActivityRecord(date=date(2025, 3, 1), timestamp=0),
            ActivityRecord(date=date(2025, 2, 28), timestamp=0),
            ActivityRecord(date=date(2025, 2, 27), timestamp=0),
        ]
        assert compute_streak(records, today=today) == 3


class TestAddActivity:
    """Tests for idempotent daily activity insertion."""

    def test_adds_first_record(self):
        records = []
        assert add_activity(records, now=NOON_TODAY) is True
        assert len(records) == 1
        assert records[0].date == TODAY
        assert records[0].action == ActivityAction.PREDICTION

    def test_same_day_is_idempotent(self):
        records = []
        add_activity(records, ActivityAction.PREDICTION, now=NOON_TODAY)
        added = add_activity(records, ActivityAction.YIELD, now=NOON_TODAY + 3600)
        assert added is False
        assert len(records) == 1
        assert records[0].action == ActivityAction.PREDICTION

    def test_next_day_adds(self):
        records = []
        add_activity(records, now=NOON_TODAY)
        assert add_activity(records, now=NOON_TODAY + DAY_SECONDS) is True
        assert len(records) == 2

    def test_utc_today(self):
        assert utc_today(NOON_TODAY) == TODAY
        # 23:30 UTC is still the same UTC day
        assert utc_today(NOON_TODAY + 11.5 * 3600) == TODAY

    def test_record_to_dict_from_dict(self):
        record = ActivityRecord(date=TODAY, timestamp=NOON_TODAY, action=ActivityAction.BURN)
        data = record.to_dict()
        assert data['date'] == "2025-01-15"
        assert data['action'] == "burn"
        assert ActivityRecord.from_dict(data) == record


# ============================================================================
# LOCAL CACHE TESTS
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return LocalLedgerCache(clock=clock)


class TestLocalLedgerCache:
    """Tests for LocalLedgerCache."""

    def test_unknown_address_is_empty(self, cache):
        stats = cache.get_stats(USER)
        assert stats.total == 0
        assert stats.volume_usd == 0
        assert cache.get_predictions(USER) == []
        assert cache.get_volumes(USER) == []
        assert cache.get_activities(USER) == []
        assert cache.get_yield(USER) == 0.0
        assert USER not in cache

    def test_record_prediction(self, cache):
        cache.record_prediction(USER, PredictionResult(predicted=True, actual=True, confidence=80))
        breakdown = cache.record_prediction(
            USER, PredictionResult(predicted=True, actual=False, confidence=60)
        )

        stats = cache.get_stats(USER)
        assert stats.correct == 1
        assert stats.total == 2
        assert breakdown.predictions_made == 2
        assert breakdown.accuracy_percentage == 50.0
        # Dampened: 0.5 * 0.4 * 4000
        assert breakdown.accuracy_points == 800

    def test_record_volume_sums(self, cache):
        cache.record_volume(USER, 300)
        breakdown = cache.record_volume(USER, 250, prediction_id="pred-1")

        assert breakdown.total_volume_usd == 550
        assert breakdown.volume_points == 1000
        volumes = cache.get_volumes(USER)
        assert [v.amount_usd for v in volumes] == [300, 250]
        assert volumes[1].prediction_id == "pred-1"

    def test_negative_volume_clamped(self, cache):
        cache.record_volume(USER, 500)
        cache.record_volume(USER, -400)
        assert cache.get_stats(USER).volume_usd == 500

    def test_yield_is_running_total(self, cache):
        cache.record_yield(USER, 30)
        breakdown = cache.record_yield(USER, 25)
        assert cache.get_yield(USER) == 55
        assert breakdown.total_yield_usd == 55
        assert breakdown.yield_points == 600

    def test_activity_once_per_day(self, cache):
        cache.record_activity(USER)
        cache.record_activity(USER, ActivityAction.YIELD)
        assert len(cache.get_activities(USER)) == 1
        assert cache.get_stats(USER).consecutive_days == 1

    def test_activity_streak_over_days(self, cache, clock):
        for _ in range(3):
            cache.record_activity(USER)
            clock.advance_days(1)
        # Now the day after the last activity: still within grace period
        assert cache.get_stats(USER).consecutive_days == 3
        clock.advance_days(1)
        assert cache.get_stats(USER).consecutive_days == 0

    def test_burn_counts_as_activity(self, cache):
        breakdown = cache.record_burn(USER)
        activities = cache.get_activities(USER)
        assert len(activities) == 1
        assert activities[0].action == ActivityAction.BURN
        assert breakdown.consecutive_days == 1
        assert breakdown.consistency_points == 67

    def test_clear_removes_everything(self, cache):
        cache.record_prediction(USER, PredictionResult(predicted=True, actual=True))
        cache.record_volume(USER, 100)
        cache.record_activity(USER)
        cache.record_yield(USER, 10)

        cache.clear(USER)

        assert cache.get_predictions(USER) == []
        assert cache.get_volumes(USER) == []
        assert cache.get_activities(USER) == []
        assert cache.get_yield(USER) == 0.0
        assert cache.calculate_breakdown(USER).total_score == 0

    def test_clear_unknown_address(self, cache):
        cache.clear(USER)
        assert len(cache) == 0

    def test_addresses_are_isolated(self, cache):
        other = "0x1111111111111111111111111111111111111111"
        cache.record_volume(USER, 1000)
        cache.record_volume(other, 100)
        cache.clear(other)
        assert cache.get_stats(USER).volume_usd == 1000
        assert cache.addresses() == [USER]

    def test_getters_return_copies(self, cache):
        cache.record_prediction(USER, PredictionResult(predicted=False, actual=False))
        predictions = cache.get_predictions(USER)
        predictions.clear()
        assert len(cache.get_predictions(USER)) == 1

    def test_prediction_result_is_immutable(self):
        result = PredictionResult(predicted=True, actual=False, confidence=70, stake_amount_usd=25)
        assert result.correct is False
        with pytest.raises(AttributeError):
            result.actual = True
        assert PredictionResult.from_dict(result.to_dict()) == result
