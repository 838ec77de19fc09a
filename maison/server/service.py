"""Energy telemetry server - main orchestrator."""

import asyncio
import logging
import signal
import sys
from typing import Optional

from aiohttp import web

from maison.api.app import create_app
from maison.api.inference import InferenceClient
from maison.ingest.pipeline import IngestionPipeline
from maison.shared.database import MySQLReadingStore
from maison.shared.errors import PersistenceError
from maison.shared.store import MemoryReadingStore, ReadingStore
from maison.subscriber.manager import SubscriptionManager

from .config import Config, load_config

logger = logging.getLogger(__name__)


def build_store(config: Config) -> ReadingStore:
    """Create the configured reading store."""
    if config.store.backend == "memory":
        return MemoryReadingStore()
    store = MySQLReadingStore(config.db, timeout=config.store.timeout)
    try:
        store.ensure_schema()
    except PersistenceError as e:
        # the pipeline reports failures per write; the database may come up later
        logger.error(f"Database not ready at startup: {e}")
    return store


class EnergyServer:
    """Runs the bus subscription and the HTTP API over one pipeline and store."""

    def __init__(self, config: Config, store: Optional[ReadingStore] = None):
        self.config = config
        self.store = store if store is not None else build_store(config)
        self.pipeline = IngestionPipeline(
            self.store,
            gas_mode=config.gas_mode,
            store_timeout=config.store.timeout,
        )
        self.subscription = SubscriptionManager(config.mqtt, self.pipeline)
        self.inference = InferenceClient(config.inference)
        self._running = False

    def _setup_signal_handlers(self):
        """Set up signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            signame = signal.Signals(signum).name
            logger.info(f"Received {signame}, shutting down...")
            self._running = False

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

    async def run(self):
        """Run the server until a shutdown signal arrives."""
        self._setup_signal_handlers()
        self._running = True

        app = create_app(
            self.pipeline,
            self.config.store,
            self.config.http,
            subscription=self.subscription,
            inference=self.inference,
        )
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, self.config.http.host, self.config.http.port)
        await site.start()
        logger.info(f"HTTP API listening on {self.config.http.host}:{self.config.http.port}")

        subscription_task = asyncio.create_task(self.subscription.run())

        try:
            while self._running and not subscription_task.done():
                await asyncio.sleep(1.0)
        except asyncio.CancelledError:
            pass

        logger.info("Shutting down energy server...")

        self.subscription.stop()
        await subscription_task
        await runner.cleanup()
        self.store.close()

        logger.info("Energy server stopped.")


def run_server(config_path: Optional[str] = None):
    """Load configuration and run the server (blocking)."""
    from maison.shared.logging import setup_logging

    config = load_config(config_path)
    setup_logging(config.log_level, config.log_levels)

    logger.info("Starting energy telemetry server...")
    server = EnergyServer(config)

    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
