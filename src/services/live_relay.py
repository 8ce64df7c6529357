import asyncio
import logging
from typing import AsyncIterator

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from core.constants import DEPLOYMENT_CREATED_TOPIC
from schemas import DeploymentEvent
from services.bus import BusMessage, Subscriber

logger = logging.getLogger(__name__)


class LiveRelay:
    """Bridges ``deployment.created`` to websocket clients.

    Every connection gets its own bus subscription, opened on accept and
    released as soon as the client goes away. Payloads are forwarded
    verbatim and in bus order; anything that does not parse as a deployment
    event is logged and dropped.
    """

    def __init__(
        self,
        bus: Subscriber,
        topic: str = DEPLOYMENT_CREATED_TOPIC,
        logger: logging.Logger = logger,
    ):
        self.bus = bus
        self.topic = topic
        self.logger = logger
        self.connections = 0

    def _is_valid(self, payload: str) -> bool:
        try:
            DeploymentEvent.model_validate_json(payload)
        except ValidationError as e:
            self.logger.error(
                "Error parsing %s message, dropping: %s", self.topic, e.errors(include_url=False)
            )
            return False
        return True

    async def _forward(self, websocket: WebSocket, messages: AsyncIterator[BusMessage]):
        async for message in messages:
            if not self._is_valid(message.data):
                continue
            try:
                await websocket.send_text(message.data)
            except (WebSocketDisconnect, RuntimeError):
                # receive side reports the disconnect
                return

    async def _wait_for_disconnect(self, websocket: WebSocket):
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    async def serve(self, websocket: WebSocket):
        await websocket.accept()
        self.connections += 1
        self.logger.info("WebSocket connection established (%s open)", self.connections)
        try:
            async with self.bus.subscribe(self.topic) as messages:
                forward = asyncio.create_task(self._forward(websocket, messages))
                receive = asyncio.create_task(self._wait_for_disconnect(websocket))
                try:
                    await asyncio.wait({forward, receive}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    for task in (forward, receive):
                        task.cancel()
                    for task in (forward, receive):
                        try:
                            await task
                        except (asyncio.CancelledError, WebSocketDisconnect):
                            pass
                        except Exception:
                            self.logger.error("Relay task failed", exc_info=True)
        finally:
            self.connections -= 1
            self.logger.info("WebSocket connection closed (%s open)", self.connections)
