from datetime import datetime, timezone

import pytest

from maison.ingest.validator import parse_number, parse_timestamp, validate
from maison.shared.errors import MalformedPayload, ValidationError
from maison.shared.models import GasMode


def test_firmware_payload_maps_to_reading_fields(firmware_payload) -> None:
    result = validate(firmware_payload, strict=True)

    reading = result.reading
    assert result.warnings == []
    assert reading.temperature == 22.5
    assert reading.humidity == 40.0
    assert reading.voltage == 230.0
    assert reading.current_primary == 1.2
    assert reading.current_secondary == 3.4
    assert reading.current_rms == 2.1
    assert reading.water_flow == 0.8
    assert reading.gas_level == 0
    assert reading.tank_level == 75.0
    assert reading.timestamp is None


def test_absent_fields_are_unknown_not_zero() -> None:
    reading = validate({"voltage": 0}, strict=True).reading

    assert reading.voltage == 0.0
    assert reading.temperature is None
    assert reading.known_fields() == ("voltage",)


def test_explicit_null_is_unknown() -> None:
    reading = validate({"temperature": None, "humidity": 10}, strict=True).reading

    assert reading.temperature is None
    assert reading.humidity == 10.0


def test_extra_keys_are_ignored() -> None:
    result = validate({"temperature": 20, "firmware": "1.4.2", "rssi": -70}, strict=True)

    assert result.reading.temperature == 20.0
    assert result.warnings == []


@pytest.mark.parametrize("key", ["sct013", "Irms", "current_rms"])
def test_current_rms_aliases(key) -> None:
    assert validate({key: 4.2}, strict=True).reading.current_rms == 4.2


def test_first_alias_wins_when_several_are_present() -> None:
    reading = validate({"sct013": 1.0, "Irms": 2.0}, strict=True).reading

    assert reading.current_rms == 1.0


def test_strict_rejects_wrong_type_with_field_name() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate({"temperature": "hot", "humidity": 30}, strict=True)

    assert excinfo.value.fields == ["temperature"]
    assert "expected a number" in excinfo.value.errors[0].reason


def test_strict_reports_every_offending_field() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate({"humidity": 120, "voltage": -1, "level": "full"}, strict=True)

    assert sorted(excinfo.value.fields) == ["humidity", "level", "voltage"]


def test_lenient_stores_wrong_type_as_unknown_with_warning() -> None:
    result = validate({"temperature": "hot", "humidity": 30}, strict=False)

    assert result.reading.temperature is None
    assert result.reading.humidity == 30.0
    assert [w.field for w in result.warnings] == ["temperature"]


def test_lenient_keeps_out_of_range_values() -> None:
    result = validate({"temperature": 140.0, "level": -3}, strict=False)

    assert result.reading.temperature == 140.0
    assert result.reading.tank_level == -3.0
    assert sorted(w.field for w in result.warnings) == ["level", "temperature"]


def test_range_bounds_are_inclusive() -> None:
    result = validate({"temperature": -50, "humidity": 100, "level": 0}, strict=True)

    assert result.warnings == []


@pytest.mark.parametrize("value", [float("nan"), float("inf"), "NaN", "-inf"])
def test_non_finite_numbers_are_rejected(value) -> None:
    with pytest.raises(ValidationError):
        validate({"voltage": value}, strict=True)


def test_numeric_strings_are_accepted() -> None:
    reading = validate({"temperature": " 21.5 ", "voltage": "230"}, strict=True).reading

    assert reading.temperature == 21.5
    assert reading.voltage == 230.0


def test_booleans_are_not_numbers_outside_gas() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate({"humidity": True}, strict=True)

    assert excinfo.value.fields == ["humidity"]


def test_gas_keeps_flag_and_level_representations() -> None:
    assert validate({"gasDetected": 1}, strict=True).reading.gas_level == 1
    assert isinstance(validate({"gasDetected": 1}, strict=True).reading.gas_level, int)
    assert validate({"gasDetected": 412.5}, strict=True).reading.gas_level == 412.5
    assert validate({"gasDetected": True}, strict=True).reading.gas_level == 1


def test_gas_flag_mode_requires_zero_or_one() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate({"gasDetected": 0.7}, strict=True, gas_mode=GasMode.FLAG)
    assert excinfo.value.errors[0].reason == "must be 0 or 1"

    result = validate({"gasDetected": 0.7}, strict=False, gas_mode=GasMode.FLAG)
    assert result.reading.gas_level == 0.7
    assert result.warnings


def test_gas_level_mode_rejects_negative() -> None:
    with pytest.raises(ValidationError):
        validate({"gas": -5}, strict=True, gas_mode=GasMode.LEVEL)


def test_timestamp_is_taken_from_input() -> None:
    reading = validate({"timestamp": "2025-05-03T14:32:00Z"}, strict=True).reading

    assert reading.timestamp == datetime(2025, 5, 3, 14, 32, tzinfo=timezone.utc)


def test_epoch_timestamp_is_accepted() -> None:
    reading = validate({"ts": 1746282720}, strict=True).reading

    assert reading.timestamp == datetime(2025, 5, 3, 14, 32, tzinfo=timezone.utc)


def test_bad_timestamp_strict_and_lenient() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate({"timestamp": "yesterday"}, strict=True)
    assert excinfo.value.fields == ["timestamp"]

    result = validate({"timestamp": "yesterday", "voltage": 1}, strict=False)
    assert result.reading.timestamp is None
    assert result.reading.voltage == 1.0


@pytest.mark.parametrize("raw", [[1, 2], "temperature", 42, None])
def test_non_object_payload_is_malformed(raw) -> None:
    with pytest.raises(MalformedPayload):
        validate(raw, strict=False)


@pytest.mark.parametrize("strict", [True, False])
def test_validation_is_idempotent(strict) -> None:
    raw = {"temperature": "hot", "humidity": 55, "gasDetected": 1, "level": 101}
    if strict:
        with pytest.raises(ValidationError) as first:
            validate(raw, strict=True)
        with pytest.raises(ValidationError) as second:
            validate(raw, strict=True)
        assert first.value.errors == second.value.errors
    else:
        assert validate(raw, strict=False) == validate(raw, strict=False)


def test_parse_helpers() -> None:
    assert parse_number("7") == 7
    assert parse_number(7.5) == 7.5
    naive = parse_timestamp("2025-05-03T14:32:00")
    assert naive.tzinfo is timezone.utc
    shifted = parse_timestamp("2025-05-03T16:32:00+02:00")
    assert shifted == datetime(2025, 5, 3, 14, 32, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    [
        "0001-01-01T00:00:00+01:00",
        "9999-12-31T23:30:00-01:00",
        "0500-01-01T00:00:00Z",
        -4e10,
    ],
)
def test_timestamp_outside_storable_range_is_a_field_error(value) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate({"voltage": 1, "timestamp": value}, strict=True)
    assert excinfo.value.fields == ["timestamp"]

    result = validate({"voltage": 1, "timestamp": value}, strict=False)
    assert result.reading.timestamp is None
    assert result.reading.voltage == 1.0
    assert [w.field for w in result.warnings] == ["timestamp"]


def test_timestamp_range_bounds_are_inclusive() -> None:
    low = validate({"timestamp": "1000-01-01T00:00:00Z"}, strict=True).reading
    high = validate({"timestamp": "9999-12-31T23:59:59Z"}, strict=True).reading

    assert low.timestamp == datetime(1000, 1, 1, tzinfo=timezone.utc)
    assert high.timestamp == datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


def test_gas_level_too_large_for_a_double_is_rejected() -> None:
    huge = 10 ** 400

    with pytest.raises(ValidationError) as excinfo:
        validate({"gas": huge}, strict=True, gas_mode=GasMode.LEVEL)
    assert excinfo.value.fields == ["gas"]

    result = validate({"gas": huge, "voltage": 230}, strict=False)
    assert result.reading.gas_level is None
    assert result.reading.voltage == 230.0
