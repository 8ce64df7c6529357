import logging

from core.constants import WALLET_ADDED_TOPIC, WALLET_REMOVED_TOPIC
from services.bus import Subscriber

logger = logging.getLogger(__name__)


async def watch_wallet_registry(bus: Subscriber, logger: logging.Logger = logger):
    """Log wallet registry changes announced by the registry API.

    Informational only: the detector queries the registry for every
    candidate, so additions and removals apply without any action here.
    """
    async with bus.subscribe(WALLET_ADDED_TOPIC, WALLET_REMOVED_TOPIC) as messages:
        async for message in messages:
            if message.topic == WALLET_ADDED_TOPIC:
                logger.info("Wallet %s added to registry", message.data.strip().lower())
            elif message.topic == WALLET_REMOVED_TOPIC:
                logger.info("Wallet %s removed from registry", message.data.strip().lower())
