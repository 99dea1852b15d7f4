"""Parsed activity records -> stream samples.

Converts the record dicts produced by an activity-file parser into
StreamSample models. Parsers differ in field naming, so both the plain
and the ``enhanced_`` variants are accepted, and positions may arrive
either in degrees or in semicircles.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from training_load_server.schemas.streams import ActivityStreams, StreamSample

SEMICIRCLES_TO_DEGREES = 180.0 / 2**31


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _number(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class StreamRecordTransformer:
    """Transform parser records -> ActivityStreams.

    Record fields -> StreamSample fields:
    - timestamp (datetime or seconds) -> timestamp (seconds since first record)
    - power -> power
    - heart_rate | hr -> heart_rate
    - cadence -> cadence
    - enhanced_altitude | altitude -> altitude
    - enhanced_speed | speed -> speed
    - latitude | position_lat (semicircles) -> latitude
    - longitude | position_long (semicircles) -> longitude
    """

    @staticmethod
    def transform_record(record: Mapping[str, Any], origin: float) -> StreamSample | None:
        """Convert one record; records without a timestamp are dropped."""
        raw_ts = record.get("timestamp")
        if isinstance(raw_ts, datetime):
            seconds = raw_ts.timestamp()
        else:
            seconds = _number(raw_ts)
        if seconds is None:
            return None

        latitude = _number(record.get("latitude"))
        if latitude is None and record.get("position_lat") is not None:
            latitude = float(record["position_lat"]) * SEMICIRCLES_TO_DEGREES
        longitude = _number(record.get("longitude"))
        if longitude is None and record.get("position_long") is not None:
            longitude = float(record["position_long"]) * SEMICIRCLES_TO_DEGREES

        return StreamSample(
            timestamp=seconds - origin,
            power=_number(record.get("power")),
            heart_rate=_number(_first(record, "heart_rate", "hr")),
            cadence=_number(record.get("cadence")),
            altitude=_number(_first(record, "enhanced_altitude", "altitude")),
            speed=_number(_first(record, "enhanced_speed", "speed")),
            latitude=latitude,
            longitude=longitude,
        )

    @classmethod
    def transform(cls, records: Iterable[Mapping[str, Any]]) -> ActivityStreams:
        """Convert parser records to ordered streams starting at t=0."""
        records = list(records)
        stamps = []
        for record in records:
            raw_ts = record.get("timestamp")
            seconds = raw_ts.timestamp() if isinstance(raw_ts, datetime) else _number(raw_ts)
            if seconds is not None:
                stamps.append(seconds)
        if not stamps:
            return ActivityStreams(samples=[])

        origin = min(stamps)
        samples = [cls.transform_record(record, origin) for record in records]
        return ActivityStreams(samples=[s for s in samples if s is not None])
