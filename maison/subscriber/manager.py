"""Subscription Manager - owns the broker connection and hands messages to the pipeline."""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from maison.ingest.pipeline import IngestionPipeline
from maison.shared.errors import ConnectivityError
from maison.shared.mqtt import MQTTConfig

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Broker connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def create_client(config: MQTTConfig) -> mqtt.Client:
    """Create a paho client (v2 API) with its own reconnect disabled."""
    return mqtt.Client(
        callback_api_version=CallbackAPIVersion.VERSION2,
        client_id=config.client_id,
        reconnect_on_failure=False,  # reconnection is driven by SubscriptionManager
    )


class SubscriptionManager:
    """Keeps a subscription to the telemetry topic alive.

    paho callbacks run on the client's network thread. Messages cross to the
    event loop through a bounded queue drained by a single worker, so they
    reach the pipeline one at a time and in delivery order.
    """

    def __init__(
        self,
        config: MQTTConfig,
        pipeline: IngestionPipeline,
        client_factory: Callable[[MQTTConfig], mqtt.Client] = create_client,
    ):
        self.config = config
        self.pipeline = pipeline
        self.client_factory = client_factory
        self.client: Optional[mqtt.Client] = None
        self.state = ConnectionState.DISCONNECTED
        self.dropped = 0
        self._running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._connected: Optional[asyncio.Event] = None
        self._disconnected: Optional[asyncio.Event] = None
        self._stopped: Optional[asyncio.Event] = None

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def _set_state(self, state: ConnectionState):
        if state is not self.state:
            logger.info(f"Subscription state: {self.state.value} -> {state.value}")
            self.state = state

    # paho callbacks (network thread)

    def _on_connect(self, client: mqtt.Client, userdata, flags, reason_code, properties):
        """Callback when connected to MQTT broker."""
        if reason_code == 0:
            logger.info(f"Connected to MQTT broker at {self.config.broker}:{self.config.port}")
            self._set_state(ConnectionState.CONNECTED)
            result, _ = client.subscribe(self.config.topic, qos=self.config.qos)
            if result != mqtt.MQTT_ERR_SUCCESS:
                logger.error(f"Failed to subscribe to {self.config.topic}: rc={result}")
            else:
                logger.info(f"Subscribed to: {self.config.topic}")
            self._notify(self._connected)
        else:
            logger.error(f"Failed to connect to MQTT broker, reason: {reason_code}")
            self._notify(self._disconnected)

    def _on_subscribe(self, client: mqtt.Client, userdata, mid, reason_code_list, properties):
        for reason_code in reason_code_list:
            if reason_code.is_failure:
                logger.error(f"Broker refused subscription to {self.config.topic}: {reason_code}")

    def _on_disconnect(self, client: mqtt.Client, userdata, disconnect_flags, reason_code, properties):
        """Callback when disconnected from MQTT broker."""
        if reason_code != 0:
            logger.warning(f"Unexpected disconnection from MQTT broker (reason={reason_code})")
        else:
            logger.info("Disconnected from MQTT broker")
        self._set_state(ConnectionState.DISCONNECTED)
        self._notify(self._disconnected)

    def _on_message(self, client: mqtt.Client, userdata, msg: mqtt.MQTTMessage):
        """Callback when a message is received."""
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._enqueue, msg.payload)

    def _notify(self, event: Optional[asyncio.Event]):
        if event is not None and self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(event.set)

    # event loop side

    def _enqueue(self, payload: bytes):
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.error(f"Message queue full ({self.config.queue_size}), dropping message")

    async def _dispatch(self):
        """Hand queued messages to the pipeline in delivery order."""
        while True:
            payload = await self._queue.get()
            try:
                await self.pipeline.ingest_bus_payload(payload)
            except Exception as e:
                logger.error(f"Error processing message from {self.config.topic}: {e}")
            finally:
                self._queue.task_done()

    async def _connect(self):
        """Open a fresh client connection and wait for the broker's answer.

        Raises:
            ConnectivityError: If the broker can't be reached or refuses us.
        """
        self._connected.clear()
        self._disconnected.clear()

        self.client = self.client_factory(self.config)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_subscribe = self._on_subscribe
        self.client.on_message = self._on_message

        logger.info(f"Connecting to MQTT broker at {self.config.broker}:{self.config.port}")
        try:
            await asyncio.to_thread(
                self.client.connect,
                self.config.broker,
                self.config.port,
                keepalive=self.config.keepalive,
            )
        except (OSError, ValueError) as e:
            raise ConnectivityError(f"Could not reach {self.config.broker}:{self.config.port}: {e}") from e

        self.client.loop_start()

        connected = asyncio.ensure_future(self._connected.wait())
        refused = asyncio.ensure_future(self._disconnected.wait())
        try:
            done, _ = await asyncio.wait(
                {connected, refused},
                timeout=self.config.connect_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            connected.cancel()
            refused.cancel()

        if not self._connected.is_set():
            if not done:
                raise ConnectivityError("Timeout waiting for MQTT connection")
            raise ConnectivityError("Broker refused the connection")

    def _teardown_client(self):
        if self.client is None:
            return
        try:
            self.client.disconnect()
        except Exception as e:
            logger.debug(f"Error while disconnecting MQTT client: {e}")
        self.client.loop_stop()
        self.client = None

    async def _wait_stopped(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def run(self):
        """Connect, subscribe and reconnect at a fixed interval until stopped."""
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.config.queue_size)
        self._connected = asyncio.Event()
        self._disconnected = asyncio.Event()
        self._stopped = asyncio.Event()
        self._running = True

        worker = asyncio.create_task(self._dispatch())
        try:
            while self._running:
                self._set_state(ConnectionState.CONNECTING)
                try:
                    await self._connect()
                    # stays here for as long as the session lasts
                    disconnected = asyncio.ensure_future(self._disconnected.wait())
                    stopped = asyncio.ensure_future(self._stopped.wait())
                    try:
                        await asyncio.wait({disconnected, stopped}, return_when=asyncio.FIRST_COMPLETED)
                    finally:
                        disconnected.cancel()
                        stopped.cancel()
                except ConnectivityError as e:
                    logger.warning(f"MQTT connection failed: {e}")

                self._teardown_client()
                self._set_state(ConnectionState.DISCONNECTED)

                if self._running:
                    logger.info(f"Reconnecting in {self.config.reconnect_interval}s")
                    if await self._wait_stopped(self.config.reconnect_interval):
                        break
        finally:
            self._teardown_client()
            self._set_state(ConnectionState.DISCONNECTED)
            await self._drain(worker)

    async def _drain(self, worker: asyncio.Task):
        """Process messages already received, then stop the worker."""
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.pipeline.store_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Shutting down with {self._queue.qsize()} unprocessed messages")
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass

    def stop(self):
        """Ask run() to disconnect and return. Safe to call from any thread."""
        self._running = False
        if self._stopped is not None:
            self._notify(self._stopped)
