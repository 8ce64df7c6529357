import logging
from typing import AsyncIterator, Optional

from web3 import AsyncWeb3, WebSocketProvider

from services.block_source import Web3BlockSource


class WebSocketManager:
    """Owns one persistent websocket provider and its subscriptions."""

    def __init__(self, url, logger=None):
        self.url = url
        self.w3: Optional[AsyncWeb3] = None
        self.logger = logging.getLogger(__name__) if logger is None else logger

    @property
    def block_source(self) -> Web3BlockSource:
        if self.w3 is None:
            raise RuntimeError("websocket provider is not connected")
        return Web3BlockSource(self.w3)

    async def connect(self):
        w3 = AsyncWeb3(WebSocketProvider(self.url))
        await w3.provider.connect()
        self.w3 = w3

    async def disconnect(self):
        if self.w3 is None:
            return
        w3, self.w3 = self.w3, None
        try:
            await w3.provider.disconnect()
        except Exception:
            # the socket is usually already gone when we get here
            self.logger.debug("Error while closing websocket provider", exc_info=True)

    async def subscribe(self, *params) -> str:
        subscription_id = await self.w3.eth.subscribe(*params)
        return subscription_id

    async def read_messages(self) -> AsyncIterator[dict]:
        async for payload in self.w3.socket.process_subscriptions():
            yield payload["result"]
