"""Thin aiohttp surface over the ingestion pipeline."""

import json
import logging
from typing import Optional

from aiohttp import web

from maison.ingest.pipeline import IngestionPipeline
from maison.server.config import HTTPConfig, StoreConfig
from maison.shared.errors import MalformedPayload, PersistenceError, ValidationError
from maison.shared.models import Origin
from maison.subscriber.manager import SubscriptionManager

from .inference import InferenceClient, InferenceError

logger = logging.getLogger(__name__)


def _error(status: int, message: str, **extra) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


class EnergyAPI:
    """Route handlers for querying and inserting readings."""

    def __init__(
        self,
        pipeline: IngestionPipeline,
        store_config: StoreConfig,
        http_config: HTTPConfig,
        subscription: Optional[SubscriptionManager] = None,
        inference: Optional[InferenceClient] = None,
    ):
        self.pipeline = pipeline
        self.store_config = store_config
        self.http_config = http_config
        self.subscription = subscription
        self.inference = inference

    async def index(self, request: web.Request) -> web.Response:
        return web.Response(text="Energy telemetry server is running")

    async def list_readings(self, request: web.Request) -> web.Response:
        raw_limit = request.query.get("limit")
        if raw_limit is None:
            limit = self.http_config.default_limit
        else:
            try:
                limit = int(raw_limit)
            except ValueError:
                return _error(400, f"limit must be an integer, got {raw_limit!r}")
            if limit < 0:
                return _error(400, "limit must not be negative")

        try:
            readings = await self.pipeline.recent(limit, self.store_config.query_cap)
        except PersistenceError as e:
            logger.error(f"Failed to fetch readings: {e}")
            return _error(500, "could not fetch readings")
        return web.json_response([r.to_dict() for r in readings])

    async def insert_reading(self, request: web.Request) -> web.Response:
        try:
            raw = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "request body must be a JSON object")

        try:
            stored = await self.pipeline.ingest(raw, Origin.API)
        except MalformedPayload as e:
            return _error(400, str(e))
        except ValidationError as e:
            return _error(400, "validation failed", errors=[err.to_dict() for err in e.errors])
        except PersistenceError:
            return _error(500, "could not store reading")

        return web.json_response(
            {"message": "Reading stored", "reading": stored.to_dict()},
            status=201,
        )

    async def health(self, request: web.Request) -> web.Response:
        store_ok = await self.pipeline.store_available()
        bus_ok = self.subscription is not None and self.subscription.is_connected
        state = self.subscription.state.value if self.subscription else "disabled"
        return web.json_response(
            {
                "status": "ok" if store_ok and bus_ok else "degraded",
                "store": store_ok,
                "subscription": bus_ok,
                "subscription_state": state,
            },
            status=200 if store_ok and bus_ok else 503,
        )

    async def ask(self, request: web.Request) -> web.Response:
        if self.inference is None or not self.inference.configured:
            return _error(503, "no inference service configured")

        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        question = body.get("question") if isinstance(body, dict) else None
        if not isinstance(question, str) or not question.strip():
            return _error(400, "question is required")

        try:
            answer = await self.inference.ask(question.strip())
        except InferenceError as e:
            logger.error(f"Inference request failed: {e}")
            return _error(502, "inference service unavailable")
        return web.json_response({"answer": answer})

    def routes(self):
        return [
            web.get("/", self.index),
            web.get("/energy", self.list_readings),
            web.post("/energy", self.insert_reading),
            web.get("/health", self.health),
            web.post("/ask", self.ask),
        ]


def create_app(
    pipeline: IngestionPipeline,
    store_config: StoreConfig,
    http_config: HTTPConfig,
    subscription: Optional[SubscriptionManager] = None,
    inference: Optional[InferenceClient] = None,
) -> web.Application:
    """Build the aiohttp application."""
    api = EnergyAPI(pipeline, store_config, http_config, subscription, inference)
    app = web.Application()
    app.add_routes(api.routes())

    if inference is not None:
        async def close_inference(app: web.Application):
            await inference.close()

        app.on_cleanup.append(close_inference)

    return app
