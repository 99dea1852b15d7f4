"""Tests for parser record -> stream transformation."""

from datetime import UTC, datetime, timedelta

import pytest

from training_load_server.transformers.streams import (
    SEMICIRCLES_TO_DEGREES,
    StreamRecordTransformer,
)


class TestStreamRecordTransformer:
    """Tests for StreamRecordTransformer."""

    def test_timestamps_relative_to_first_record(self):
        start = datetime(2026, 5, 1, 6, 0, tzinfo=UTC)
        records = [
            {"timestamp": start + timedelta(seconds=2), "power": 210},
            {"timestamp": start, "power": 200},
            {"timestamp": start + timedelta(seconds=1), "power": 205},
        ]

        streams = StreamRecordTransformer.transform(records)

        assert streams.timestamps == [0.0, 1.0, 2.0]
        assert streams.series("power") == [200.0, 205.0, 210.0]

    def test_numeric_timestamps(self):
        streams = StreamRecordTransformer.transform(
            [{"timestamp": 1000, "hr": 120}, {"timestamp": 1005, "hr": 125}]
        )

        assert streams.timestamps == [0.0, 5.0]
        assert streams.series("heart_rate") == [120.0, 125.0]

    def test_enhanced_fields_preferred(self):
        sample = StreamRecordTransformer.transform_record(
            {"timestamp": 10, "enhanced_speed": 3.2, "speed": 3.0, "enhanced_altitude": 120.5},
            origin=0,
        )

        assert sample is not None
        assert sample.speed == 3.2
        assert sample.altitude == 120.5

    def test_semicircle_positions(self):
        sample = StreamRecordTransformer.transform_record(
            {"timestamp": 0, "position_lat": 600000000, "position_long": -100000000},
            origin=0,
        )

        assert sample.latitude == pytest.approx(600000000 * SEMICIRCLES_TO_DEGREES)
        assert sample.longitude == pytest.approx(-100000000 * SEMICIRCLES_TO_DEGREES)

    def test_records_without_timestamp_dropped(self):
        streams = StreamRecordTransformer.transform(
            [{"timestamp": 0, "power": 100}, {"power": 999}, {"timestamp": 1, "power": 110}]
        )
        assert len(streams) == 2

    def test_no_timestamps(self):
        assert StreamRecordTransformer.transform([{"power": 100}]).samples == []
