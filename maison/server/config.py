"""Configuration loading for the energy telemetry server."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

from maison.shared.config import load_yaml_config
from maison.shared.database import DBConfig
from maison.shared.models import GasMode
from maison.shared.mqtt import MQTTConfig, parse_broker

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("mysql", "memory")


@dataclass
class StoreConfig:
    """Reading store selection and limits."""
    backend: str = "mysql"
    timeout: float = 5.0  # seconds, per store operation
    query_cap: int = 100  # hard ceiling on records per query


@dataclass
class HTTPConfig:
    host: str = "0.0.0.0"
    port: int = 5000
    default_limit: int = 10


@dataclass
class InferenceConfig:
    """External text-generation service used by the question endpoint."""
    url: Optional[str] = None
    model: Optional[str] = None
    timeout: float = 30.0


@dataclass
class Config:
    """Main configuration container."""
    mqtt: MQTTConfig
    db: DBConfig
    store: StoreConfig = field(default_factory=StoreConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    gas_mode: GasMode = GasMode.AUTO
    log_level: str = "INFO"
    log_levels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Build config from a YAML dictionary plus environment overrides.

        Raises:
            ValueError: If a setting has an unusable value.
        """
        mqtt_config = MQTTConfig.from_dict(data.get("mqtt", {}))
        if mqtt_broker := os.environ.get("MQTT_BROKER"):
            mqtt_config.broker, mqtt_config.port = parse_broker(mqtt_broker, mqtt_config.port)

        store_data = data.get("store", {})
        store = StoreConfig(
            backend=store_data.get("backend", "mysql"),
            timeout=float(store_data.get("timeout", 5.0)),
            query_cap=int(store_data.get("query_cap", 100)),
        )
        if store.backend not in STORE_BACKENDS:
            raise ValueError(f"store.backend must be one of {STORE_BACKENDS}, got {store.backend!r}")
        if store.timeout <= 0 or store.query_cap <= 0:
            raise ValueError("store.timeout and store.query_cap must be positive")

        http_data = data.get("http", {})
        http = HTTPConfig(
            host=http_data.get("host", "0.0.0.0"),
            port=int(http_data.get("port", 5000)),
            default_limit=int(http_data.get("default_limit", 10)),
        )

        inference_data = data.get("inference") or {}
        inference = InferenceConfig(
            url=os.environ.get("INFERENCE_URL") or inference_data.get("url"),
            model=inference_data.get("model"),
            timeout=float(inference_data.get("timeout", 30.0)),
        )

        try:
            gas_mode = GasMode(data.get("gas_mode", "auto"))
        except ValueError:
            modes = [m.value for m in GasMode]
            raise ValueError(f"gas_mode must be one of {modes}, got {data.get('gas_mode')!r}")

        return cls(
            mqtt=mqtt_config,
            db=DBConfig.from_env(),
            store=store,
            http=http,
            inference=inference,
            gas_mode=gas_mode,
            log_level=os.environ.get("LOG_LEVEL") or data.get("log_level", "INFO"),
            log_levels=dict(data.get("log_levels") or {}),
        )


def load_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to the YAML file. If not provided, uses
            MAISON_CONFIG, then config/config-{MAISON_ENV}.yaml.

    Returns:
        Config object with all settings loaded.
    """
    data = load_yaml_config(config_path)
    config = Config.from_dict(data)
    logger.debug(f"Loaded config: broker={config.mqtt.broker}:{config.mqtt.port}, store={config.store.backend}")
    return config
