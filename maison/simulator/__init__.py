"""Sensor node simulator - publishes fake telemetry for development."""

__version__ = "0.1.0"

from .node import NodePublisher, PublishStats, SensorNode


def main():
    """Entry point for the sensor node simulator."""
    import argparse
    import logging
    import sys

    from maison.server.config import load_config
    from maison.shared.errors import ConnectivityError
    from maison.shared.logging import setup_logging

    parser = argparse.ArgumentParser(description="Publish simulated energy telemetry")
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("--interval", type=float, default=5.0, help="Seconds between samples")
    parser.add_argument("--count", type=int, default=None, help="Number of samples to send")
    parser.add_argument(
        "--malformed-every",
        type=int,
        default=0,
        help="Send a truncated payload every N samples",
    )
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config.log_level, config.log_levels)
    logger = logging.getLogger(__name__)

    publisher = NodePublisher(config.mqtt)
    try:
        publisher.connect()
    except ConnectivityError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        publisher.run(args.interval, count=args.count, malformed_every=args.malformed_every)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        publisher.close()


__all__ = ["NodePublisher", "PublishStats", "SensorNode", "main"]
