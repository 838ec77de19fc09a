import asyncio
from types import SimpleNamespace
from typing import List

import paho.mqtt.client as mqtt
import pytest

from maison.shared.mqtt import MQTTConfig
from maison.subscriber.manager import ConnectionState, SubscriptionManager


class FakeClient:
    """Stands in for paho's Client; connects synchronously from loop_start()."""

    def __init__(self, refuse: bool = False, unreachable: bool = False):
        self.refuse = refuse
        self.unreachable = unreachable
        self.subscriptions: List[tuple] = []
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False
        self.on_connect = None
        self.on_disconnect = None
        self.on_subscribe = None
        self.on_message = None

    def connect(self, host, port, keepalive=60):
        if self.unreachable:
            raise ConnectionRefusedError(111, "Connection refused")

    def loop_start(self):
        self.loop_started = True
        self.on_connect(self, None, {}, 5 if self.refuse else 0, None)

    def loop_stop(self):
        self.loop_stopped = True

    def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))
        return mqtt.MQTT_ERR_SUCCESS, 1

    def disconnect(self):
        self.disconnected = True

    # test helpers

    def deliver(self, payload: bytes):
        self.on_message(self, None, SimpleNamespace(topic="maison/energie", payload=payload))

    def drop_connection(self):
        self.on_disconnect(self, None, {}, 7, None)


class ClientFactory:
    def __init__(self, *clients: FakeClient):
        self.pending = list(clients)
        self.created: List[FakeClient] = []

    def __call__(self, config):
        client = self.pending.pop(0) if self.pending else FakeClient()
        self.created.append(client)
        return client


@pytest.fixture
def mqtt_config() -> MQTTConfig:
    return MQTTConfig(reconnect_interval=0.05, connect_timeout=0.5, queue_size=100)


async def _wait_for(predicate, timeout: float = 2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_connects_and_subscribes_to_topic(mqtt_config, pipeline) -> None:
    factory = ClientFactory(FakeClient())
    manager = SubscriptionManager(mqtt_config, pipeline, client_factory=factory)
    assert manager.state is ConnectionState.DISCONNECTED

    task = asyncio.create_task(manager.run())
    await _wait_for(lambda: manager.is_connected)

    assert factory.created[0].subscriptions == [("maison/energie", 1)]

    manager.stop()
    await asyncio.wait_for(task, timeout=2.0)
    assert manager.state is ConnectionState.DISCONNECTED
    assert factory.created[0].disconnected
    assert factory.created[0].loop_stopped


@pytest.mark.asyncio
async def test_messages_reach_store_in_delivery_order(mqtt_config, pipeline, store) -> None:
    client = FakeClient()
    manager = SubscriptionManager(mqtt_config, pipeline, client_factory=ClientFactory(client))
    task = asyncio.create_task(manager.run())
    await _wait_for(lambda: manager.is_connected)

    for i in range(20):
        client.deliver(f'{{"voltage": {i}}}'.encode())
    await _wait_for(lambda: len(store) == 20)

    recent = store.recent(20, cap=20)
    assert [r.voltage for r in recent] == [float(i) for i in range(19, -1, -1)]
    assert [r.id for r in recent] == list(range(20, 0, -1))

    manager.stop()
    await asyncio.wait_for(task, timeout=2.0)


@pytest.mark.asyncio
async def test_malformed_message_does_not_stop_processing(mqtt_config, pipeline, store) -> None:
    client = FakeClient()
    manager = SubscriptionManager(mqtt_config, pipeline, client_factory=ClientFactory(client))
    task = asyncio.create_task(manager.run())
    await _wait_for(lambda: manager.is_connected)

    client.deliver(b'{"voltage": 23')
    client.deliver(b'{"voltage": 231}')
    await _wait_for(lambda: len(store) == 1)

    assert store.recent(1, cap=1)[0].voltage == 231.0
    manager.stop()
    await asyncio.wait_for(task, timeout=2.0)


@pytest.mark.asyncio
async def test_reconnects_after_unexpected_disconnect(mqtt_config, pipeline) -> None:
    first, second = FakeClient(), FakeClient()
    factory = ClientFactory(first, second)
    manager = SubscriptionManager(mqtt_config, pipeline, client_factory=factory)
    task = asyncio.create_task(manager.run())
    await _wait_for(lambda: manager.is_connected)

    first.drop_connection()
    await _wait_for(lambda: len(factory.created) == 2 and manager.is_connected)

    assert second.subscriptions == [("maison/energie", 1)]
    assert first.loop_stopped
    manager.stop()
    await asyncio.wait_for(task, timeout=2.0)


@pytest.mark.asyncio
async def test_retries_when_broker_unreachable_or_refusing(mqtt_config, pipeline) -> None:
    factory = ClientFactory(FakeClient(unreachable=True), FakeClient(refuse=True), FakeClient())
    manager = SubscriptionManager(mqtt_config, pipeline, client_factory=factory)
    task = asyncio.create_task(manager.run())

    await _wait_for(lambda: manager.is_connected)

    assert len(factory.created) == 3
    manager.stop()
    await asyncio.wait_for(task, timeout=2.0)


@pytest.mark.asyncio
async def test_stop_while_waiting_to_reconnect(pipeline) -> None:
    config = MQTTConfig(reconnect_interval=60.0, connect_timeout=0.5)
    factory = ClientFactory(FakeClient(unreachable=True))
    manager = SubscriptionManager(config, pipeline, client_factory=factory)
    task = asyncio.create_task(manager.run())
    await _wait_for(lambda: len(factory.created) == 1 and manager.state is ConnectionState.DISCONNECTED)

    manager.stop()
    await asyncio.wait_for(task, timeout=2.0)
    assert len(factory.created) == 1


@pytest.mark.asyncio
async def test_full_queue_drops_message(pipeline) -> None:
    manager = SubscriptionManager(MQTTConfig(queue_size=1), pipeline)
    manager._queue = asyncio.Queue(maxsize=1)

    manager._enqueue(b"{}")
    manager._enqueue(b"{}")

    assert manager.dropped == 1
