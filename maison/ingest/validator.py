"""Validation and normalization of raw telemetry payloads.

Validation is pure: it never logs or touches the store. Callers decide what
to do with the warnings it reports.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from maison.shared.errors import FieldError, MalformedPayload, ValidationError
from maison.shared.models import (
    FIELDS,
    TIMESTAMP_KEYS,
    TIMESTAMP_MAX,
    TIMESTAMP_MIN,
    FieldSpec,
    GasMode,
    Number,
    Reading,
)


class _Invalid(Exception):
    """A value that cannot be parsed to its declared type."""

    pass


@dataclass(frozen=True)
class ValidationResult:
    """Normalized reading plus the problems tolerated on the way."""
    reading: Reading
    warnings: List[FieldError] = field(default_factory=list)


def _pick(raw: Mapping, keys: Tuple[str, ...]) -> Tuple[Optional[str], Any]:
    """Return the first key carrying a non-null value."""
    for key in keys:
        if raw.get(key) is not None:
            return key, raw[key]
    return None, None


def parse_number(value: Any) -> Number:
    """Parse a finite int or float, accepting numeric strings."""
    if isinstance(value, bool):
        raise _Invalid("expected a number, got a boolean")
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise _Invalid(f"expected a number, got {value!r}")
    else:
        raise _Invalid(f"expected a number, got {type(value).__name__}")

    if isinstance(number, float) and not math.isfinite(number):
        raise _Invalid("must be a finite number")
    return number


def parse_gas(value: Any) -> Number:
    """Gas sensors report either a boolean flag or a level."""
    if isinstance(value, bool):
        return int(value)
    return parse_number(value)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string or Unix epoch seconds into aware UTC.

    Only instants a DATETIME column can hold (years 1000-9999) are accepted.
    """
    if isinstance(value, bool):
        raise _Invalid("expected an ISO-8601 string or epoch seconds")
    if isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise _Invalid(f"epoch seconds out of range: {e}")
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise _Invalid(f"not an ISO-8601 timestamp: {value!r}")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        try:
            # an offset can push an instant near year 1 or 9999 past datetime's range
            parsed = parsed.astimezone(timezone.utc)
        except (OverflowError, ValueError):
            raise _Invalid("timestamp out of range")
    else:
        raise _Invalid("expected an ISO-8601 string or epoch seconds")

    if not TIMESTAMP_MIN <= parsed <= TIMESTAMP_MAX:
        raise _Invalid(f"timestamp out of range [{TIMESTAMP_MIN.year}, {TIMESTAMP_MAX.year}]")
    return parsed


def _coerce(spec: FieldSpec, value: Any) -> Number:
    # gas keeps its int/float representation, everything else is a float
    try:
        if spec.name == "gas_level":
            number = parse_gas(value)
            float(number)  # must fit a DOUBLE column
            return number
        return float(parse_number(value))
    except OverflowError:
        raise _Invalid("number too large")


def _range_problem(spec: FieldSpec, value: Number, gas_mode: GasMode) -> Optional[str]:
    if spec.name == "gas_level" and gas_mode is GasMode.FLAG:
        if value not in (0, 1):
            return "must be 0 or 1"
        return None
    if spec.minimum is not None and value < spec.minimum:
        if spec.maximum is not None:
            return f"out of range [{spec.minimum:g}, {spec.maximum:g}]"
        return f"must be >= {spec.minimum:g}"
    if spec.maximum is not None and value > spec.maximum:
        return f"out of range [{spec.minimum:g}, {spec.maximum:g}]"
    return None


def validate(
    raw: Any,
    strict: bool,
    gas_mode: GasMode = GasMode.AUTO,
) -> ValidationResult:
    """Validate a raw payload and build a normalized Reading.

    Args:
        raw: Decoded payload; must be a mapping. Unknown keys are ignored.
        strict: When True any type or range problem raises ValidationError.
            When False, unparseable values become unknown and out-of-range
            values are kept; both are reported as warnings.
        gas_mode: Interpretation of the gas field.

    Returns:
        ValidationResult with the reading and any tolerated problems.

    Raises:
        MalformedPayload: If raw is not a mapping.
        ValidationError: In strict mode, listing every offending field.
    """
    if not isinstance(raw, Mapping):
        raise MalformedPayload(f"expected a JSON object, got {type(raw).__name__}")

    values: Dict[str, Optional[Number]] = {}
    problems: List[FieldError] = []

    for spec in FIELDS:
        key, value = _pick(raw, spec.keys)
        if key is None:
            values[spec.name] = None
            continue

        try:
            number = _coerce(spec, value)
        except _Invalid as e:
            problems.append(FieldError(key, str(e)))
            values[spec.name] = None
            continue

        reason = _range_problem(spec, number, gas_mode)
        if reason:
            problems.append(FieldError(key, reason))
        values[spec.name] = number

    timestamp = None
    key, value = _pick(raw, TIMESTAMP_KEYS)
    if key is not None:
        try:
            timestamp = parse_timestamp(value)
        except _Invalid as e:
            problems.append(FieldError(key, str(e)))

    if strict and problems:
        raise ValidationError(problems)

    return ValidationResult(
        reading=Reading(timestamp=timestamp, **values),
        warnings=problems,
    )
