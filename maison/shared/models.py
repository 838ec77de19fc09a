"""Core data models for energy telemetry readings."""

from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

Number = Union[int, float]


class Origin(Enum):
    """Producer of a raw payload."""
    BUS = "bus"
    API = "api"

    @property
    def strict(self) -> bool:
        """Operator input fails fast; field input is accepted with warnings."""
        return self is Origin.API


class GasMode(Enum):
    """How the gas field is interpreted, depending on sensor generation."""
    AUTO = "auto"
    FLAG = "flag"
    LEVEL = "level"


@dataclass(frozen=True)
class FieldSpec:
    """Payload keys and plausible range for one Reading attribute."""
    name: str
    keys: Tuple[str, ...]
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @property
    def wire_name(self) -> str:
        return self.keys[0]


FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("temperature", ("temperature",), -50.0, 100.0),
    FieldSpec("humidity", ("humidity",), 0.0, 100.0),
    FieldSpec("voltage", ("voltage",), 0.0),
    FieldSpec("current_primary", ("current_20A", "current_primary"), 0.0),
    FieldSpec("current_secondary", ("current_30A", "current_secondary"), 0.0),
    FieldSpec("current_rms", ("sct013", "Irms", "current_rms"), 0.0),
    FieldSpec("water_flow", ("waterFlow", "water_flow"), 0.0),
    FieldSpec("gas_level", ("gasDetected", "gas", "gas_level"), 0.0),
    FieldSpec("tank_level", ("level", "tank_level"), 0.0, 100.0),
)

TIMESTAMP_KEYS = ("timestamp", "ts")

# the range a DATETIME column holds
TIMESTAMP_MIN = datetime(1000, 1, 1, tzinfo=timezone.utc)
TIMESTAMP_MAX = datetime(9999, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Reading:
    """One normalized telemetry sample.

    None means the value is unknown, which is distinct from zero.
    """
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    voltage: Optional[float] = None
    current_primary: Optional[float] = None
    current_secondary: Optional[float] = None
    current_rms: Optional[float] = None
    water_flow: Optional[float] = None
    gas_level: Optional[Number] = None
    tank_level: Optional[float] = None
    timestamp: Optional[datetime] = None

    def values(self) -> Dict[str, Optional[Number]]:
        """Sensor values keyed by attribute name, timestamp excluded."""
        return {spec.name: getattr(self, spec.name) for spec in FIELDS}

    def known_fields(self) -> Tuple[str, ...]:
        return tuple(name for name, value in self.values().items() if value is not None)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the firmware's key names."""
        data: Dict[str, Any] = {
            spec.wire_name: getattr(self, spec.name) for spec in FIELDS
        }
        data["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return data


@dataclass(frozen=True)
class StoredReading(Reading):
    """A Reading as persisted, with the store's insertion sequence."""
    id: Optional[int] = None

    @classmethod
    def from_reading(cls, reading: Reading, id: int, timestamp: datetime) -> "StoredReading":
        values = {f.name: getattr(reading, f.name) for f in fields(Reading)}
        values["timestamp"] = timestamp
        return cls(id=id, **values)

    def reading(self) -> Reading:
        """Drop store-assigned sequence, keeping the sample itself."""
        return Reading(**{f.name: getattr(self, f.name) for f in fields(Reading)})

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["id"] = self.id
        return data
