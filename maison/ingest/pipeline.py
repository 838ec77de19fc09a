"""Single entry point that normalizes and persists readings from any origin."""

import asyncio
import logging
from typing import Any, List, Optional

from maison.shared.errors import (
    MalformedPayload,
    PersistenceError,
    ValidationError,
)
from maison.shared.models import GasMode, Origin, Reading, StoredReading
from maison.shared.mqtt import decode_payload
from maison.shared.store import ReadingStore

from .validator import validate

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Validates raw payloads and appends them to the store.

    The origin decides strictness and failure policy: API callers get every
    error raised back to them, bus messages are logged and dropped. There is
    no retry and no deduplication; a reading delivered twice is stored twice.
    """

    def __init__(
        self,
        store: ReadingStore,
        gas_mode: GasMode = GasMode.AUTO,
        store_timeout: float = 5.0,
    ):
        self.store = store
        self.gas_mode = gas_mode
        self.store_timeout = store_timeout

    async def ingest(self, raw: Any, origin: Origin) -> Optional[StoredReading]:
        """Validate and persist one payload.

        Args:
            raw: Decoded payload.
            origin: Producer of the payload.

        Returns:
            The stored reading, or None when a bus message was dropped.

        Raises:
            MalformedPayload, ValidationError, PersistenceError: API origin only.
        """
        if origin is Origin.BUS:
            return await self._ingest_bus(raw)
        return await self._ingest(raw, origin)

    async def ingest_bus_payload(self, payload: bytes) -> Optional[StoredReading]:
        """Decode and ingest a raw message from the bus. Never raises."""
        try:
            raw = decode_payload(payload)
        except MalformedPayload as e:
            logger.error(f"Dropping malformed message: {e} (payload={payload[:200]!r})")
            return None
        return await self._ingest_bus(raw)

    async def _ingest_bus(self, raw: Any) -> Optional[StoredReading]:
        try:
            return await self._ingest(raw, Origin.BUS)
        except (MalformedPayload, ValidationError) as e:
            logger.error(f"Dropping invalid bus message: {e} (payload={raw!r})")
        except PersistenceError as e:
            logger.error(f"Dropping bus message, persistence failed: {e}")
        return None

    async def _ingest(self, raw: Any, origin: Origin) -> StoredReading:
        try:
            result = validate(raw, strict=origin.strict, gas_mode=self.gas_mode)
        except ValidationError as e:
            logger.info(f"Rejected {origin.value} payload: {e}")
            raise

        for warning in result.warnings:
            logger.warning(f"Accepted {origin.value} reading with {warning}")

        stored = await self.append(result.reading)
        logger.debug(f"Stored {origin.value} reading #{stored.id} fields={stored.known_fields()}")
        return stored

    async def append(self, reading: Reading) -> StoredReading:
        """Append in a worker thread, bounded by the store timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.store.append, reading),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Store append timed out after {self.store_timeout}s")
            raise PersistenceError(f"store append timed out after {self.store_timeout}s")
        except PersistenceError as e:
            logger.error(f"Store append failed: {e}")
            raise

    async def recent(self, limit: int, cap: int) -> List[StoredReading]:
        """Query recent readings, bounded by the store timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.store.recent, limit, cap),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError:
            raise PersistenceError(f"store query timed out after {self.store_timeout}s")

    async def store_available(self) -> bool:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.store.ping),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError:
            return False
