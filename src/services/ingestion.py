import asyncio
import logging
from typing import Iterable

from schemas import DeploymentEvent, DeploymentRecord
from services.event_publisher import EventPublisher
from services.persistence import RecordStore

logger = logging.getLogger(__name__)


class DeploymentIngestor:
    """Stores detected deployments and announces the new ones.

    An event is published only for a record whose ``store`` reported
    ``inserted=True``; duplicates are silent. Without a publisher (the
    default for backfill runs) records are only stored.
    """

    def __init__(
        self,
        store: RecordStore,
        publisher: EventPublisher | None = None,
        logger: logging.Logger = logger,
    ):
        self.store = store
        self.publisher = publisher
        self.logger = logger

    async def ingest(self, records: Iterable[DeploymentRecord]) -> int:
        inserted = 0
        for record in records:
            result = await asyncio.to_thread(self.store.store, record)
            if not result.inserted:
                continue
            inserted += 1
            if self.publisher is not None:
                await self.publisher.publish(DeploymentEvent.from_record(record))
        return inserted
