"""Tests for intensity zone classification."""

from datetime import date, timedelta

import pytest

from training_load_server.services.zones import (
    IntensityZone,
    IntensityZoneClassifier,
    ScoredActivity,
)

MONDAY = date(2026, 2, 2)


@pytest.fixture
def classifier() -> IntensityZoneClassifier:
    return IntensityZoneClassifier()


class TestZoneLookup:
    """Tests for IF to zone mapping."""

    @pytest.mark.parametrize(
        ("intensity_factor", "zone"),
        [
            (0.40, IntensityZone.RECOVERY),
            (0.55, IntensityZone.ENDURANCE),
            (0.74, IntensityZone.ENDURANCE),
            (0.80, IntensityZone.TEMPO),
            (0.90, IntensityZone.THRESHOLD),
            (1.00, IntensityZone.VO2MAX),
            (1.10, IntensityZone.ANAEROBIC),
            (1.15, IntensityZone.NEUROMUSCULAR),
            (1.60, IntensityZone.NEUROMUSCULAR),
        ],
    )
    def test_zone_for_intensity(self, classifier, intensity_factor, zone):
        assert classifier.get_training_intensity_zone(intensity_factor) == zone

    def test_monotonic(self, classifier):
        """Raising IF never moves to a lower zone."""
        order = list(IntensityZone)
        previous = 0
        for step in range(0, 160):
            index = order.index(classifier.get_training_intensity_zone(step / 100))
            assert index >= previous
            previous = index


class TestDistribution:
    """Tests for TSS-weighted distributions."""

    def test_percentages_sum_to_100(self, classifier):
        activities = [
            ScoredActivity(MONDAY, 60.0, 0.65),
            ScoredActivity(MONDAY, 30.0, 0.82),
            ScoredActivity(MONDAY, 10.0, 1.0),
        ]

        result = classifier.distribution(activities)

        assert sum(result.zones.values()) == pytest.approx(100.0, abs=0.2)
        assert result.zones["endurance"] == 60.0
        assert result.zones["tempo"] == 30.0
        assert result.zones["vo2max"] == 10.0
        assert result.total_tss == 100.0

    def test_unscored_activities_skipped(self, classifier):
        activities = [
            ScoredActivity(MONDAY, None, 0.7),
            ScoredActivity(MONDAY, 50.0, None),
            ScoredActivity(MONDAY, 0.0, 0.8),
            ScoredActivity(MONDAY, 40.0, 0.7),
        ]

        result = classifier.distribution(activities)

        assert result.activity_count == 1
        assert result.zones["endurance"] == 100.0

    def test_empty_distribution_is_all_zero(self, classifier):
        result = classifier.distribution([])

        assert all(v == 0.0 for v in result.zones.values())
        assert result.recommendations == ["No scored activities in this period."]

    def test_too_few_activities_for_advice(self, classifier):
        result = classifier.distribution([ScoredActivity(MONDAY, 50.0, 0.7)] * 3)
        assert "Not enough activities" in result.recommendations[0]

    def test_gray_zone_advice(self, classifier):
        activities = [ScoredActivity(MONDAY, 50.0, 0.82)] * 6

        advice = classifier.recommendations(classifier.distribution(activities).zones, 6)

        assert any("easy" in a for a in advice)
        assert any("tempo" in a for a in advice)

    def test_balanced_advice(self, classifier):
        activities = [ScoredActivity(MONDAY, 80.0, 0.65)] * 5 + [
            ScoredActivity(MONDAY, 100.0, 0.98)
        ]
        result = classifier.distribution(activities)
        assert result.recommendations == ["Intensity distribution looks well balanced."]


class TestWeeklyTrends:
    """Tests for weekly intensity trends."""

    def test_groups_by_monday_week(self, classifier):
        activities = [
            ScoredActivity(MONDAY + timedelta(days=6), 50.0, 0.7),
            ScoredActivity(MONDAY + timedelta(days=7), 50.0, 0.7),
        ]

        trend = classifier.weekly_trends(activities)

        assert [w.week_start for w in trend.weeks] == [MONDAY, MONDAY + timedelta(days=7)]
        assert trend.direction == "insufficient"

    def test_increasing_trend(self, classifier):
        activities = [
            ScoredActivity(MONDAY + timedelta(weeks=week), 60.0, 0.60 + 0.05 * week)
            for week in range(6)
        ]
        activities[3] = ScoredActivity(MONDAY + timedelta(weeks=3), 60.0, 0.76)

        trend = classifier.weekly_trends(activities)

        assert trend.direction == "increasing"
        assert trend.slope > 0
        assert trend.p_value < 0.05

    def test_flat_trend_is_stable(self, classifier):
        activities = [
            ScoredActivity(MONDAY + timedelta(weeks=week), 60.0, 0.7) for week in range(4)
        ]

        trend = classifier.weekly_trends(activities)

        assert trend.direction == "stable"
        assert trend.slope == 0.0
