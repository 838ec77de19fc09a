"""Telemetry validation and ingestion."""

from .pipeline import IngestionPipeline
from .validator import ValidationResult, validate

__all__ = ["IngestionPipeline", "ValidationResult", "validate"]
