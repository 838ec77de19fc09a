"""Shared models, storage and utilities for the energy telemetry services."""

from .models import FIELDS, GasMode, Origin, Reading, StoredReading
from .errors import (
    ConnectivityError,
    FieldError,
    IngestError,
    MalformedPayload,
    PersistenceError,
    ValidationError,
)
from .store import MemoryReadingStore, ReadingStore
from .database import DBConfig, MySQLReadingStore
from .config import load_yaml_config, get_config_path
from .mqtt import MQTTConfig
from .logging import setup_logging

__all__ = [
    "FIELDS",
    "GasMode",
    "Origin",
    "Reading",
    "StoredReading",
    "ConnectivityError",
    "FieldError",
    "IngestError",
    "MalformedPayload",
    "PersistenceError",
    "ValidationError",
    "MemoryReadingStore",
    "ReadingStore",
    "DBConfig",
    "MySQLReadingStore",
    "load_yaml_config",
    "get_config_path",
    "MQTTConfig",
    "setup_logging",
]
