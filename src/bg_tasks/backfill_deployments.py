import asyncio
import logging
import sys

import click
from pydantic import BaseModel
from web3 import AsyncHTTPProvider, AsyncWeb3

from core import constants
from core.config import settings
from core.exceptions import ConfigurationError, StorageUnavailableError, WalletNotFoundError
from core.networks import get_provider_url, parse_network
from models.deployments import NetworkChain
from services.block_source import BlockSource, Web3BlockSource
from services.deployment_detector import DeploymentDetector
from services.ingestion import DeploymentIngestor
from services.persistence import PersistenceGateway
from utils.web3_utils import normalize_address

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class BackfillSummary(BaseModel):
    wallet: str
    network: str
    from_block: int
    to_block: int
    blocks_scanned: int = 0
    deployments_found: int = 0
    new_deployments: int = 0


class BackfillReconciler:
    """One-shot historical scan of a block range for a single tracked wallet.

    Shares the detector and the storage dedup contract with the live
    listener, so running it over blocks the listener already saw (or
    concurrently with it) only ever adds missing rows.
    """

    def __init__(
        self,
        network: NetworkChain,
        source: BlockSource,
        gateway: PersistenceGateway,
        ingestor: DeploymentIngestor | None = None,
        max_concurrency: int | None = None,
    ):
        self.network = network
        self.source = source
        self.gateway = gateway
        self.ingestor = ingestor or DeploymentIngestor(gateway)
        self.detector = DeploymentDetector(network, gateway, max_concurrency=max_concurrency)

    async def resolve_range(
        self,
        block_count: int | None = None,
        from_block: int | None = None,
        to_block: int | None = None,
    ) -> tuple[int, int]:
        if from_block is None or to_block is None:
            head = await self.source.get_block_number()
            if to_block is None:
                to_block = head
            if from_block is None:
                if block_count is None:
                    block_count = settings.BACKFILL_DEFAULT_BLOCKS
                from_block = max(head - block_count, 0)
        if from_block < 0 or from_block > to_block:
            raise ConfigurationError(f"Invalid block range {from_block}..{to_block}")
        return from_block, to_block

    async def run(
        self,
        wallet: str,
        block_count: int | None = None,
        from_block: int | None = None,
        to_block: int | None = None,
    ) -> BackfillSummary:
        try:
            wallet = normalize_address(wallet)
        except ValueError as e:
            raise ConfigurationError(str(e)) from None
        logger.info("Starting backfill for wallet %s on %s", wallet, self.network.value)

        wallet_id = await asyncio.to_thread(self.gateway.resolve_wallet_id, wallet)
        if wallet_id is None:
            raise WalletNotFoundError(wallet)

        from_block, to_block = await self.resolve_range(block_count, from_block, to_block)
        summary = BackfillSummary(
            wallet=wallet, network=self.network.value, from_block=from_block, to_block=to_block
        )
        total = to_block - from_block + 1
        logger.info("Scanning blocks %s to %s", from_block, to_block)

        async for number, records in self.detector.detect_range(
            self.source, from_block, to_block, sender=wallet
        ):
            summary.deployments_found += len(records)
            try:
                summary.new_deployments += await self.ingestor.ingest(records)
            except StorageUnavailableError:
                raise
            except Exception:
                logger.error(
                    "Error storing deployments of block %s on %s",
                    number,
                    self.network.value,
                    exc_info=True,
                )
            summary.blocks_scanned += 1
            if summary.blocks_scanned % constants.BACKFILL_PROGRESS_EVERY == 0:
                logger.info("Processed %s/%s blocks", summary.blocks_scanned, total)

        logger.info(
            "Backfill completed. Found %s new deployments (%s seen) in %s blocks.",
            summary.new_deployments,
            summary.deployments_found,
            summary.blocks_scanned,
        )
        return summary


async def run(
    wallet: str,
    network: str,
    blocks: int,
    from_block: int | None,
    to_block: int | None,
    publish: bool,
) -> int:
    from core.db import engine

    try:
        network_chain = parse_network(network)
        url = get_provider_url(network_chain, settings.ALCHEMY_KEY, websocket=False)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1

    bus = None
    gateway = PersistenceGateway(engine)
    ingestor = DeploymentIngestor(gateway)
    if publish:
        from services.bus import RedisBus
        from services.event_publisher import EventPublisher

        bus = RedisBus.from_url(settings.REDIS_URL)
        ingestor = DeploymentIngestor(gateway, EventPublisher(bus))

    w3 = AsyncWeb3(AsyncHTTPProvider(url))
    reconciler = BackfillReconciler(network_chain, Web3BlockSource(w3), gateway, ingestor)

    try:
        await reconciler.run(wallet, block_count=blocks, from_block=from_block, to_block=to_block)
    except ConfigurationError as e:
        # WalletNotFoundError included: cannot backfill an untracked wallet
        logger.error("Backfill failed: %s", e)
        return 1
    except StorageUnavailableError:
        logger.critical("Storage unavailable, aborting backfill", exc_info=True)
        return 1
    finally:
        if bus is not None:
            await bus.close()
        engine.dispose()
    return 0


@click.command()
@click.option("--wallet", required=True, help="Wallet address to backfill")
@click.option(
    "--network",
    required=True,
    help="Network to scan (eth_mainnet, sepolia, polygon, arbitrum)",
)
@click.option(
    "--blocks",
    default=lambda: settings.BACKFILL_DEFAULT_BLOCKS,
    type=click.IntRange(min=0),
    show_default="BACKFILL_DEFAULT_BLOCKS",
    help="Number of blocks to scan back from the current head",
)
@click.option("--from-block", type=click.IntRange(min=0), default=None, help="Starting block number")
@click.option("--to-block", type=click.IntRange(min=0), default=None, help="Last block number (defaults to head)")
@click.option("--publish/--no-publish", default=False, help="Also publish deployment.created events")
def main(wallet, network, blocks, from_block, to_block, publish):
    from log import configure_logging

    configure_logging(app="backfill_deployments")
    sys.exit(asyncio.run(run(wallet, network, blocks, from_block, to_block, publish)))


if __name__ == "__main__":
    main()
