import asyncio
import logging

import pytest

from conftest import FakeBus, WALLET_ADDRESS
from core.constants import WALLET_ADDED_TOPIC, WALLET_REMOVED_TOPIC
from services.registry_watcher import watch_wallet_registry


@pytest.mark.asyncio
async def test_registry_changes_are_logged(bus: FakeBus, caplog):
    caplog.set_level(logging.INFO, logger="services.registry_watcher")
    task = asyncio.create_task(watch_wallet_registry(bus))
    for _ in range(50):
        if bus.subscriber_count(WALLET_ADDED_TOPIC):
            break
        await asyncio.sleep(0.01)

    await bus.publish(WALLET_ADDED_TOPIC, "0x" + "AA" * 20)
    await bus.publish(WALLET_REMOVED_TOPIC, WALLET_ADDRESS)
    await asyncio.sleep(0.02)
    task.cancel()

    assert f"Wallet {WALLET_ADDRESS} added to registry" in caplog.text
    assert f"Wallet {WALLET_ADDRESS} removed from registry" in caplog.text
    await asyncio.gather(task, return_exceptions=True)
    assert bus.subscriber_count(WALLET_ADDED_TOPIC) == 0
