"""Simulated sensor node publishing telemetry to the broker."""

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from maison.shared.errors import ConnectivityError
from maison.shared.mqtt import MQTTConfig, encode_payload

logger = logging.getLogger(__name__)

# key -> (base value, variation, lower bound, upper bound)
CHANNELS = {
    "temperature": (22.0, 0.5, -50.0, 100.0),
    "humidity": (50.0, 2.0, 0.0, 100.0),
    "voltage": (230.0, 1.5, 0.0, None),
    "current_20A": (3.0, 0.4, 0.0, 20.0),
    "current_30A": (5.0, 0.6, 0.0, 30.0),
    "sct013": (4.0, 0.5, 0.0, None),
    "waterFlow": (1.2, 0.3, 0.0, None),
    "level": (60.0, 1.0, 0.0, 100.0),
}


class SensorNode:
    """Generates firmware-shaped payloads with a mean-reverting random walk."""

    def __init__(self, gas_probability: float = 0.02, rng: Optional[random.Random] = None):
        self.gas_probability = gas_probability
        self.rng = rng or random.Random()
        self.last_values: Dict[str, float] = {}

    def _next_value(self, key: str) -> float:
        base, variation, low, high = CHANNELS[key]
        current = self.last_values.get(key, base)

        new_value = current + self.rng.uniform(-variation, variation)
        # Mean reversion
        new_value = new_value * 0.9 + base * 0.1
        if low is not None:
            new_value = max(low, new_value)
        if high is not None:
            new_value = min(high, new_value)

        self.last_values[key] = new_value
        return round(new_value, 2)

    def sample(self) -> dict:
        payload = {key: self._next_value(key) for key in CHANNELS}
        payload["gasDetected"] = 1 if self.rng.random() < self.gas_probability else 0
        return payload


@dataclass
class PublishStats:
    sent: int = 0
    malformed: int = 0
    failed: int = 0


def create_publisher_client(config: MQTTConfig) -> mqtt.Client:
    """Create a paho client that reconnects on its own while its loop runs."""
    client = mqtt.Client(
        callback_api_version=CallbackAPIVersion.VERSION2,
        client_id=f"{config.client_id}-simulator",
    )
    client.reconnect_delay_set(min_delay=1, max_delay=max(1, int(config.reconnect_interval)))
    return client


class NodePublisher:
    """Publishes simulated readings to the telemetry topic.

    Reconnection is left to paho's network loop. Samples taken while the
    link is down are counted as failed and skipped, not buffered.
    """

    def __init__(
        self,
        config: MQTTConfig,
        node: Optional[SensorNode] = None,
        client_factory: Callable[[MQTTConfig], mqtt.Client] = create_publisher_client,
    ):
        self.config = config
        self.node = node or SensorNode()
        self.client = client_factory(config)
        self.stats = PublishStats()

    @property
    def address(self) -> str:
        return f"{self.config.broker}:{self.config.port}"

    def connect(self):
        """Start the network loop and wait until the broker accepts the session.

        Raises:
            ConnectivityError: If the broker is unreachable or has not accepted
                the connection within ``connect_timeout`` seconds.
        """
        try:
            self.client.connect(self.config.broker, self.config.port, keepalive=self.config.keepalive)
        except (OSError, ValueError) as e:
            raise ConnectivityError(f"Cannot reach broker {self.address}: {e}") from e
        self.client.loop_start()

        deadline = time.monotonic() + self.config.connect_timeout
        while not self.client.is_connected():
            if time.monotonic() >= deadline:
                self.close()
                raise ConnectivityError(
                    f"Broker {self.address} did not accept the connection "
                    f"within {self.config.connect_timeout}s"
                )
            time.sleep(0.05)
        logger.info(f"Simulator connected to {self.address}, publishing to {self.config.topic}")

    def close(self):
        self.client.disconnect()
        self.client.loop_stop()

    def publish(self, payload: str) -> bool:
        """Publish one payload, waiting for the broker's ack when qos > 0."""
        if not self.client.is_connected():
            logger.warning(f"Link to {self.address} is down, sample skipped")
            self.stats.failed += 1
            return False

        info = self.client.publish(self.config.topic, payload, qos=self.config.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"Publish refused by client: {mqtt.error_string(info.rc)}")
            self.stats.failed += 1
            return False
        if self.config.qos > 0:
            info.wait_for_publish(timeout=self.config.connect_timeout)
            if not info.is_published():
                logger.warning(f"No ack for message {info.mid} within {self.config.connect_timeout}s")
                self.stats.failed += 1
                return False

        self.stats.sent += 1
        logger.debug(f"Published to {self.config.topic}: {payload}")
        return True

    def run(self, interval: float, count: Optional[int] = None, malformed_every: int = 0) -> PublishStats:
        """Publish a sample every interval seconds.

        Args:
            interval: Seconds between samples.
            count: Stop after this many samples; None runs until interrupted.
            malformed_every: Every Nth payload is truncated JSON (0 disables).

        Returns:
            Running totals, also kept on ``self.stats``.
        """
        taken = 0
        while count is None or taken < count:
            sample = self.node.sample()
            sample["timestamp"] = datetime.now(timezone.utc).isoformat()
            payload = encode_payload(sample)
            taken += 1
            if malformed_every and taken % malformed_every == 0:
                payload = payload[: len(payload) // 2]
                self.stats.malformed += 1
            self.publish(payload)
            if count is None or taken < count:
                time.sleep(interval)

        logger.info(
            f"Published {self.stats.sent} samples "
            f"({self.stats.malformed} truncated, {self.stats.failed} failed)"
        )
        return self.stats
