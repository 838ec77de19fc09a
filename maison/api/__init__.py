"""HTTP surface for querying and inserting readings."""

from .app import EnergyAPI, create_app
from .inference import InferenceClient, InferenceError

__all__ = ["EnergyAPI", "create_app", "InferenceClient", "InferenceError"]
