import pytest

from maison.ingest.pipeline import IngestionPipeline
from maison.shared.store import MemoryReadingStore


@pytest.fixture
def store() -> MemoryReadingStore:
    return MemoryReadingStore()


@pytest.fixture
def pipeline(store) -> IngestionPipeline:
    return IngestionPipeline(store, store_timeout=2.0)


@pytest.fixture
def firmware_payload() -> dict:
    """A complete message as sent by the ESP32 node."""
    return {
        "temperature": 22.5,
        "humidity": 40,
        "voltage": 230,
        "current_20A": 1.2,
        "current_30A": 3.4,
        "sct013": 2.1,
        "waterFlow": 0.8,
        "gasDetected": 0,
        "level": 75,
    }
