"""MQTT configuration and payload utilities."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple
from urllib.parse import urlparse

from .errors import MalformedPayload

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "maison/energie"


@dataclass
class MQTTConfig:
    """MQTT broker and subscription configuration."""
    broker: str = "localhost"
    port: int = 1883
    client_id: str = "maison-energie"
    keepalive: int = 60
    qos: int = 1
    topic: str = DEFAULT_TOPIC
    reconnect_interval: float = 5.0
    connect_timeout: float = 10.0
    queue_size: int = 1000

    @classmethod
    def from_dict(cls, data: dict) -> "MQTTConfig":
        """Create config from dictionary."""
        broker, port = parse_broker(data.get("broker", "localhost"), data.get("port", 1883))
        return cls(
            broker=broker,
            port=port,
            client_id=data.get("client_id", "maison-energie"),
            keepalive=data.get("keepalive", 60),
            qos=data.get("qos", 1),
            topic=data.get("topic", DEFAULT_TOPIC),
            reconnect_interval=data.get("reconnect_interval", 5.0),
            connect_timeout=data.get("connect_timeout", 10.0),
            queue_size=data.get("queue_size", 1000),
        )


def parse_broker(broker: str, default_port: int = 1883) -> Tuple[str, int]:
    """Split a broker given as host or mqtt://host:port URL.

    Args:
        broker: Hostname, or URL such as "mqtt://10.0.0.5:1883".
        default_port: Port used when the broker doesn't name one.

    Returns:
        Tuple of (host, port).
    """
    if "://" not in broker:
        return broker, int(default_port)
    url = urlparse(broker)
    return url.hostname or "localhost", url.port or int(default_port)


def decode_payload(payload: bytes) -> Dict[str, Any]:
    """Decode a UTF-8 JSON object payload.

    Raises:
        MalformedPayload: If the payload is not a JSON object.
    """
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPayload(f"Could not parse MQTT payload: {e}") from e
    if not isinstance(data, dict):
        raise MalformedPayload(f"Expected a JSON object, got {type(data).__name__}")
    return data


def encode_payload(data: Dict[str, Any]) -> str:
    return json.dumps(data, separators=(",", ":"))
