import logging

from core.constants import DEPLOYMENT_CREATED_TOPIC
from schemas import DeploymentEvent
from services.bus import Publisher

logger = logging.getLogger(__name__)


class EventPublisher:
    """Fire-and-forget notification of newly stored deployments.

    Storage is the source of truth: a failed publish is logged and dropped,
    never retried and never surfaced to the caller.
    """

    def __init__(
        self,
        bus: Publisher,
        topic: str = DEPLOYMENT_CREATED_TOPIC,
        logger: logging.Logger = logger,
    ):
        self.bus = bus
        self.topic = topic
        self.logger = logger

    async def publish(self, event: DeploymentEvent) -> bool:
        payload = event.to_json()
        try:
            await self.bus.publish(self.topic, payload)
        except Exception:
            self.logger.error(
                "Failed to publish %s for tx %s", self.topic, event.tx_hash, exc_info=True
            )
            return False
        self.logger.info(
            "Contract deployment detected: wallet=%s contract=%s network=%s txHash=%s",
            event.wallet_address,
            event.contract_address,
            event.network,
            event.tx_hash,
        )
        return True
