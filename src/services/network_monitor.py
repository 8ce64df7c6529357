import asyncio
import enum
import logging
from typing import AsyncIterator

from models.deployments import NetworkChain
from schemas import BlockRef
from services.socket_manager import WebSocketManager
from utils.backoff import ExponentialBackoff
from utils.web3_utils import parse_hex_to_int

logger = logging.getLogger(__name__)


class MonitorState(str, enum.Enum):
    connecting = "connecting"
    subscribed = "subscribed"
    degraded = "degraded"
    closed = "closed"


class NetworkMonitor:
    """Streams new blocks of one network.

    ``blocks()`` is an unbounded, non-restartable async iterator of
    ``BlockRef``. Transport failures never escape it: the monitor degrades,
    backs off and subscribes again. Only ``close()`` ends the stream.
    Block numbers may repeat or go backwards after a reconnect or a reorg.
    """

    def __init__(
        self,
        network: NetworkChain,
        manager: WebSocketManager,
        backoff: ExponentialBackoff,
        logger: logging.Logger = logger,
    ):
        self.network = network
        self.manager = manager
        self.backoff = backoff
        self.logger = logger
        self.state = MonitorState.connecting
        self._started = False

    @property
    def block_source(self):
        return self.manager.block_source

    def _transition(self, state: MonitorState, reason: str | None = None):
        if state == self.state:
            return
        self.logger.info(
            "Monitor %s: %s -> %s%s",
            self.network.value,
            self.state.value,
            state.value,
            f" ({reason})" if reason else "",
        )
        self.state = state

    async def _subscribe(self):
        await self.manager.connect()
        subscription_id = await self.manager.subscribe("newHeads")
        self.logger.info(
            "Subscription newHeads on %s response: %s", self.network.value, subscription_id
        )
        self._transition(MonitorState.subscribed)

    async def _fetch_block(self, header: dict) -> BlockRef | None:
        try:
            number = parse_hex_to_int(header["number"])
            return await self.manager.block_source.get_block(number)
        except Exception:
            self.logger.error(
                "Error fetching block %s on %s, skipping",
                header.get("number"),
                self.network.value,
                exc_info=True,
            )
            return None

    async def blocks(self) -> AsyncIterator[BlockRef]:
        if self._started:
            raise RuntimeError("NetworkMonitor.blocks() can only be iterated once")
        self._started = True

        while self.state != MonitorState.closed:
            try:
                await self._subscribe()
                async for header in self.manager.read_messages():
                    # a delivered header proves the subscription healthy
                    self.backoff.reset()
                    self.logger.debug(
                        "New block %s on %s", header.get("number"), self.network.value
                    )
                    block = await self._fetch_block(header)
                    if block is not None:
                        yield block
                    if self.state == MonitorState.closed:
                        return
                # the provider stopped delivering without an error
                raise ConnectionError("subscription stream ended")
            except Exception as e:
                if self.state == MonitorState.closed:
                    return
                self._transition(MonitorState.degraded, str(e) or type(e).__name__)
                self.logger.error(
                    "Websocket transport error on %s", self.network.value, exc_info=True
                )
                await self.manager.disconnect()
                delay = self.backoff.next_delay()
                self.logger.info(
                    "Reconnecting %s in %.1fs (attempt %s)",
                    self.network.value,
                    delay,
                    self.backoff.attempts,
                )
                await asyncio.sleep(delay)

    async def close(self):
        self._transition(MonitorState.closed, "shutdown")
        await self.manager.disconnect()
