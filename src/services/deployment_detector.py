import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import AsyncIterator, Protocol

from core.config import settings
from core.exceptions import StorageUnavailableError
from models.deployments import NetworkChain
from schemas import BlockRef, DeploymentRecord, ReceiptRef, TransactionRef
from services.block_source import BlockSource
from utils.web3_utils import normalize_address, normalize_tx_hash

logger = logging.getLogger(__name__)


class WalletRegistry(Protocol):
    def resolve_wallet_id(self, address: str) -> uuid.UUID | None: ...


def is_contract_creation(tx: TransactionRef) -> bool:
    return not tx.recipient


def deployed_contract_address(receipt: ReceiptRef | None) -> str | None:
    if receipt is None or not receipt.contract_address:
        return None
    return normalize_address(receipt.contract_address)


class DeploymentDetector:
    """Turns blocks into deployment records.

    A transaction is a deployment of a tracked wallet when its recipient is
    empty, its sender resolves in the wallet registry, and its receipt names
    the created contract. The registry is queried for every candidate so
    registry edits apply from the next block on.

    ``detect_block`` serves the live path and ``detect_range`` the backfill
    job; the latter walks the range block by block through ``detect_block``
    so both paths share one predicate.
    """

    def __init__(
        self,
        network: NetworkChain,
        registry: WalletRegistry,
        max_concurrency: int | None = None,
        logger: logging.Logger = logger,
    ):
        self.network = network
        self.registry = registry
        self.max_concurrency = max_concurrency or settings.DETECTOR_MAX_CONCURRENCY
        self.logger = logger

    async def detect_block(
        self, block: BlockRef, source: BlockSource, sender: str | None = None
    ) -> list[DeploymentRecord]:
        if not block.transactions:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)
        timestamp = datetime.fromtimestamp(block.timestamp, tz=timezone.utc)
        sender = normalize_address(sender) if sender else None

        async def _bounded(tx_hash: str):
            async with semaphore:
                return await self._resolve(tx_hash, block, timestamp, source, sender)

        results = await asyncio.gather(*(_bounded(h) for h in block.transactions))
        return [record for record in results if record is not None]

    async def _resolve(
        self,
        tx_hash: str,
        block: BlockRef,
        timestamp: datetime,
        source: BlockSource,
        sender: str | None,
    ) -> DeploymentRecord | None:
        try:
            tx = await source.get_transaction(tx_hash)
        except Exception as e:
            self.logger.warning(
                "Error fetching transaction %s on %s: %s", tx_hash, self.network.value, e
            )
            return None

        if tx is None or not is_contract_creation(tx):
            return None

        from_address = normalize_address(tx.sender)
        if sender is not None and from_address != sender:
            return None

        # registry lookups hit storage; StorageUnavailableError propagates
        wallet_id = await asyncio.to_thread(self.registry.resolve_wallet_id, from_address)
        if wallet_id is None:
            return None

        try:
            receipt = await source.get_transaction_receipt(tx_hash)
        except Exception as e:
            self.logger.warning(
                "Error fetching receipt %s on %s: %s", tx_hash, self.network.value, e
            )
            return None

        try:
            contract_address = deployed_contract_address(receipt)
        except ValueError as e:
            self.logger.warning(
                "Malformed receipt %s on %s, dropping: %s", tx_hash, self.network.value, e
            )
            return None
        if contract_address is None:
            self.logger.debug("Transaction %s created no contract, dropping", tx_hash)
            return None

        return DeploymentRecord(
            wallet_id=wallet_id,
            wallet_address=from_address,
            network=self.network,
            contract_address=contract_address,
            tx_hash=normalize_tx_hash(tx.hash or tx_hash),
            gas_used=receipt.gas_used,
            timestamp=timestamp,
            block_number=block.number,
        )

    async def detect_range(
        self,
        source: BlockSource,
        from_block: int,
        to_block: int,
        sender: str | None = None,
    ) -> AsyncIterator[tuple[int, list[DeploymentRecord]]]:
        """Yield ``(block_number, records)`` for every block of ``[from_block, to_block]``.

        Blocks that cannot be fetched or processed are logged and yielded with
        no records so callers can still count progress. StorageUnavailableError
        is the only error that ends the scan.
        """
        for number in range(from_block, to_block + 1):
            try:
                block = await source.get_block(number)
                records = await self.detect_block(block, source, sender=sender)
            except StorageUnavailableError:
                raise
            except Exception:
                self.logger.error(
                    "Error processing block %s on %s", number, self.network.value, exc_info=True
                )
                records = []
            yield number, records
