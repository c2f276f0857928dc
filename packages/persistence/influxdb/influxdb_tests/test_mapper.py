"""Unit tests for the record -> point mapper."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from influxdb_client import Point

from cqrs_ddd_persistence_influxdb.exceptions import InfluxQueryError
from cqrs_ddd_persistence_influxdb.mapper import (
    FieldKind,
    InfluxPoint,
    classify_field,
    coerce_field_value,
    parse_timestamp,
    resolve_record,
    to_point,
)


class TestClassifyField:
    def test_three_way_classification(self, options) -> None:
        assert classify_field(options, "device") is FieldKind.TAG
        assert classify_field(options, "temperature") is FieldKind.FIELD
        assert classify_field(options, "battery") is FieldKind.FIELD
        assert classify_field(options, "_time") is FieldKind.EXCLUDED
        assert classify_field(options, "_measurement") is FieldKind.EXCLUDED


class TestToPoint:
    def test_tags_and_fields(self, options) -> None:
        point = to_point(options, {"device": "s1", "temperature": 25.5})
        assert point == InfluxPoint("readings", {"device": "s1"}, {"temperature": 25.5})
        assert point.time is None

    def test_value_coercion(self, options) -> None:
        point = to_point(
            options,
            {
                "device": 7,
                "humidity": 40,
                "ok": True,
                "note": "fine",
                "cost": Decimal("1.25"),
            },
        )
        assert point.tags == {"device": "7"}
        assert point.fields == {"humidity": 40.0, "ok": True, "note": "fine", "cost": 1.25}
        assert isinstance(point.fields["humidity"], float)

    def test_excluded_and_none_keys(self, options) -> None:
        point = to_point(
            options,
            {"_measurement": "other", "location": None, "temperature": 1},
        )
        assert point.measurement == "readings"
        assert point.tags == {}
        assert point.fields == {"temperature": 1.0}

    def test_timestamp_parsing(self, options, fixed_now) -> None:
        point = to_point(options, {"_time": "2024-01-15T10:30:00Z", "temperature": 1})
        assert point.time == fixed_now
        epoch = to_point(options, {"_time": 0, "temperature": 1})
        assert epoch.time == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_invalid_timestamp(self, options) -> None:
        with pytest.raises(InfluxQueryError, match="Invalid timestamp") as exc_info:
            to_point(options, {"_time": "yesterday", "temperature": 1})
        assert exc_info.value.path == "_time"

    def test_record_without_fields_rejected(self, options) -> None:
        with pytest.raises(InfluxQueryError, match="no field values"):
            to_point(options, {"device": "s1"})

    def test_non_mapping_rejected(self, options) -> None:
        with pytest.raises(InfluxQueryError, match="Expected a mapping"):
            to_point(options, ["device", "s1"])  # type: ignore[arg-type]

    def test_non_finite_field_rejected(self) -> None:
        with pytest.raises(InfluxQueryError, match="non-finite"):
            coerce_field_value("t", float("nan"))

    def test_to_influx(self, fixed_now) -> None:
        point = InfluxPoint("readings", {"device": "s1"}, {"temperature": 25.5}, fixed_now)
        influx = point.to_influx("s")
        assert isinstance(influx, Point)
        assert influx.to_line_protocol() == (
            "readings,device=s1 temperature=25.5 1705314600"
        )


class TestResolveRecord:
    def test_fills_missing_time_from_clock(self, options, fixed_clock) -> None:
        record = resolve_record(options, {"device": "s1"}, clock=fixed_clock)
        assert record == {"device": "s1", "_time": "2024-01-15T10:30:00Z"}

    def test_keeps_explicit_time(self, options, fixed_clock) -> None:
        record = resolve_record(
            options, {"_time": "2023-01-01T00:00:00Z"}, clock=fixed_clock
        )
        assert record["_time"] == "2023-01-01T00:00:00Z"

    def test_deterministic_for_fixed_clock(self, options, fixed_clock) -> None:
        data = {"device": "s1", "temperature": 1}
        assert resolve_record(options, data, fixed_clock) == resolve_record(
            options, data, fixed_clock
        )


def test_parse_timestamp_naive_is_utc(fixed_now) -> None:
    assert parse_timestamp(datetime(2024, 1, 15, 10, 30)) == fixed_now
