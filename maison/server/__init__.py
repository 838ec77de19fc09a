"""Energy telemetry server - MQTT ingestion plus HTTP query and insert API."""

__version__ = "0.1.0"


def main():
    """Entry point for the energy telemetry server."""
    import argparse

    from .service import run_server

    parser = argparse.ArgumentParser(description="Energy telemetry server")
    parser.add_argument("--config", help="Path to YAML config file")
    args = parser.parse_args()

    run_server(args.config)


__all__ = ["main"]
