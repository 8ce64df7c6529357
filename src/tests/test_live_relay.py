import asyncio
from datetime import datetime, timezone

import pytest

from conftest import CONTRACT_ADDRESS, WALLET_ADDRESS, FakeBus, tx_hash
from core.constants import DEPLOYMENT_CREATED_TOPIC
from models import NetworkChain
from schemas import DeploymentEvent
from services.live_relay import LiveRelay


class FakeWebSocket:
    def __init__(self):
        self.accepted = False
        self.sent: list[str] = []
        self.incoming: asyncio.Queue = asyncio.Queue()

    async def accept(self):
        self.accepted = True

    async def receive(self):
        return await self.incoming.get()

    async def send_text(self, data: str):
        self.sent.append(data)

    def disconnect(self):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": 1000})


def make_payload(n: int) -> str:
    return DeploymentEvent(
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        wallet_address=WALLET_ADDRESS,
        contract_address=CONTRACT_ADDRESS,
        network=NetworkChain.sepolia,
        tx_hash=tx_hash(n),
        gas_used=210000,
    ).to_json()


async def settle():
    await asyncio.sleep(0.02)


async def connect(relay: LiveRelay, bus: FakeBus, websocket: FakeWebSocket) -> asyncio.Task:
    before = bus.subscriber_count(DEPLOYMENT_CREATED_TOPIC)
    task = asyncio.create_task(relay.serve(websocket))
    for _ in range(50):
        if bus.subscriber_count(DEPLOYMENT_CREATED_TOPIC) > before:
            break
        await asyncio.sleep(0.01)
    return task


@pytest.mark.asyncio
async def test_forwards_events_verbatim_in_order(bus: FakeBus):
    relay = LiveRelay(bus)
    websocket = FakeWebSocket()
    task = await connect(relay, bus, websocket)

    payloads = [make_payload(1), make_payload(2), make_payload(3)]
    for payload in payloads:
        await bus.publish(DEPLOYMENT_CREATED_TOPIC, payload)
    await settle()

    assert websocket.accepted is True
    assert websocket.sent == payloads

    websocket.disconnect()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_malformed_payloads_are_dropped(bus: FakeBus):
    relay = LiveRelay(bus)
    websocket = FakeWebSocket()
    task = await connect(relay, bus, websocket)

    await bus.publish(DEPLOYMENT_CREATED_TOPIC, "{not json")
    await bus.publish(DEPLOYMENT_CREATED_TOPIC, '{"ts": "2024-05-01T12:00:00Z"}')
    await bus.publish(DEPLOYMENT_CREATED_TOPIC, make_payload(1))
    await settle()

    assert websocket.sent == [make_payload(1)]
    assert not task.done()

    websocket.disconnect()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_disconnect_releases_subscription(bus: FakeBus):
    relay = LiveRelay(bus)
    websocket = FakeWebSocket()
    task = await connect(relay, bus, websocket)
    assert bus.subscriber_count(DEPLOYMENT_CREATED_TOPIC) == 1

    websocket.disconnect()
    await asyncio.wait_for(task, timeout=1)

    assert bus.subscriber_count(DEPLOYMENT_CREATED_TOPIC) == 0
    assert relay.connections == 0


@pytest.mark.asyncio
async def test_clients_are_isolated(bus: FakeBus):
    relay = LiveRelay(bus)
    first, second = FakeWebSocket(), FakeWebSocket()
    first_task = await connect(relay, bus, first)
    second_task = await connect(relay, bus, second)

    await bus.publish(DEPLOYMENT_CREATED_TOPIC, make_payload(1))
    await settle()
    assert first.sent == [make_payload(1)]
    assert second.sent == [make_payload(1)]

    first.disconnect()
    await asyncio.wait_for(first_task, timeout=1)

    await bus.publish(DEPLOYMENT_CREATED_TOPIC, make_payload(2))
    await settle()

    assert first.sent == [make_payload(1)]
    assert second.sent == [make_payload(1), make_payload(2)]
    assert not second_task.done()

    second.disconnect()
    await asyncio.wait_for(second_task, timeout=1)
