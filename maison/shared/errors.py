"""Error taxonomy for the ingestion pipeline."""

from dataclasses import dataclass
from typing import Dict, List


class IngestError(Exception):
    """Base class for all ingestion failures."""

    pass


class MalformedPayload(IngestError):
    """Raised when a payload is not a structured JSON object."""

    pass


@dataclass(frozen=True)
class FieldError:
    """A single offending field and the reason it was refused."""
    field: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "reason": self.reason}

    def __str__(self) -> str:
        return f"{self.field}: {self.reason}"


class ValidationError(IngestError):
    """Raised when one or more fields fail type or range checks."""

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class PersistenceError(IngestError):
    """Raised when the store fails or times out."""

    pass


class ConnectivityError(IngestError):
    """Raised when the message broker cannot be reached."""

    pass
