"""Message-bus subscription feeding the ingestion pipeline."""

from .manager import ConnectionState, SubscriptionManager, create_client

__all__ = ["ConnectionState", "SubscriptionManager", "create_client"]
