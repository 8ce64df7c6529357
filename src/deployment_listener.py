import asyncio
import logging
import signal
import sys

import click
from sqlalchemy.engine import Engine

from core import constants
from core.config import settings
from core.exceptions import ConfigurationError, StorageUnavailableError
from core.networks import get_provider_url, parse_network
from models.deployments import NetworkChain
from services.bus import RedisBus
from services.deployment_detector import DeploymentDetector
from services.event_publisher import EventPublisher
from services.ingestion import DeploymentIngestor
from services.network_monitor import NetworkMonitor
from services.persistence import PersistenceGateway
from services.registry_watcher import watch_wallet_registry
from services.socket_manager import WebSocketManager
from utils.backoff import ExponentialBackoff

logger = logging.getLogger(__name__)


def build_backoff() -> ExponentialBackoff:
    return ExponentialBackoff(
        base=settings.MONITOR_BACKOFF_BASE_SECONDS,
        max_delay=settings.MONITOR_BACKOFF_MAX_SECONDS,
        jitter=settings.MONITOR_BACKOFF_JITTER_SECONDS,
    )


async def process_blocks(
    monitor: NetworkMonitor, detector: DeploymentDetector, ingestor: DeploymentIngestor
):
    """Drive one network: every block is detected, stored and published.

    A failing block is logged and skipped. StorageUnavailableError is the
    only error that leaves this loop.
    """
    async for block in monitor.blocks():
        try:
            records = await detector.detect_block(block, monitor.block_source)
            inserted = await ingestor.ingest(records)
        except StorageUnavailableError:
            raise
        except Exception:
            logger.error(
                "Error processing block %s on %s", block.number, monitor.network.value,
                exc_info=True,
            )
            continue
        if inserted:
            logger.info(
                "Block %s on %s: %s new deployment(s)", block.number, monitor.network.value, inserted
            )


class DeploymentListener:
    """Runs one monitoring task per network over shared storage and bus handles."""

    def __init__(self, gateway: PersistenceGateway, bus: RedisBus):
        self.gateway = gateway
        self.bus = bus
        self.publisher = EventPublisher(bus)
        self.ingestor = DeploymentIngestor(gateway, self.publisher)
        self.monitors: dict[NetworkChain, NetworkMonitor] = {}
        self.tasks: dict[str, asyncio.Task] = {}

    def build_monitor(self, network: NetworkChain) -> NetworkMonitor:
        url = get_provider_url(network, settings.ALCHEMY_KEY, websocket=True)
        manager = WebSocketManager(url, logger=logging.getLogger(f"{__name__}.{network.value}"))
        return NetworkMonitor(network, manager, build_backoff())

    def start(self, networks: list[str]) -> list[NetworkChain]:
        started = []
        for name in networks:
            try:
                network = parse_network(name)
                monitor = self.build_monitor(network)
            except ConfigurationError as e:
                logger.warning("Skipping network %s: %s", name, e)
                continue
            if network in self.monitors:
                continue

            detector = DeploymentDetector(network, self.gateway)
            self.monitors[network] = monitor
            self.tasks[network.value] = asyncio.create_task(
                process_blocks(monitor, detector, self.ingestor),
                name=f"monitor-{network.value}",
            )
            logger.info("Starting monitoring for network: %s", network.value)
            started.append(network)
        return started

    def _network_names(self) -> list[str]:
        return [network.value for network in self.monitors]

    def start_registry_watcher(self):
        self.tasks["registry"] = asyncio.create_task(
            watch_wallet_registry(self.bus), name="registry-watcher"
        )

    async def supervise(self, stop: asyncio.Event):
        """Wait for shutdown, keeping the network tasks isolated from each other.

        A task that dies is logged and the others carry on. A storage outage
        is re-raised so the process exits non-zero.
        """
        stop_task = asyncio.create_task(stop.wait(), name="shutdown")
        try:
            while not stop.is_set():
                if not any(name in self.tasks for name in self._network_names()):
                    logger.error("No monitoring task left running")
                    return
                pending = set(self.tasks.values())
                done, _ = await asyncio.wait(
                    pending | {stop_task}, return_when=asyncio.FIRST_COMPLETED
                )
                for name, task in list(self.tasks.items()):
                    if task not in done:
                        continue
                    del self.tasks[name]
                    if task.cancelled():
                        continue
                    exc = task.exception()
                    if isinstance(exc, StorageUnavailableError):
                        raise exc
                    if exc is not None:
                        logger.error(
                            "Task %s stopped", name, exc_info=(type(exc), exc, exc.__traceback__)
                        )
        finally:
            stop_task.cancel()

    async def shutdown(self, engine: Engine):
        logger.info("Shutting down gracefully...")
        for monitor in self.monitors.values():
            await monitor.close()
        for task in self.tasks.values():
            task.cancel()
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()

        try:
            await self.bus.close()
        except Exception:
            logger.error("Error closing bus connection", exc_info=True)

        engine.dispose()


def log_environment(networks: list[str]):
    logger.info(
        "Environment check: hasAlchemyKey=%s networks=%s networkSet=v%s databaseUrl=%s redisUrl=%s",
        bool(settings.ALCHEMY_KEY),
        ",".join(networks),
        constants.NETWORK_SET_VERSION,
        "configured" if settings.SQLALCHEMY_DATABASE_URI else "missing",
        "configured" if settings.REDIS_URL else "missing",
    )


async def run(networks: list[str]) -> int:
    from core.db import engine, init_db

    log_environment(networks)

    try:
        await asyncio.to_thread(init_db, engine)
    except Exception:
        logger.error("Failed to initialize database schema", exc_info=True)
        return 1
    logger.info("Database schema initialized")

    gateway = PersistenceGateway(engine)
    bus = RedisBus.from_url(settings.REDIS_URL)
    listener = DeploymentListener(gateway, bus)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    if not listener.start(networks):
        logger.error("No network could be started")
        await listener.shutdown(engine)
        return 1
    listener.start_registry_watcher()

    exit_code = 0
    try:
        await listener.supervise(stop)
    except StorageUnavailableError:
        logger.critical("Storage unavailable, exiting", exc_info=True)
        exit_code = 1
    finally:
        await listener.shutdown(engine)
    return exit_code


@click.command()
@click.option(
    "--networks",
    default=None,
    help="Comma-separated networks to monitor (defaults to NETWORKS setting)",
)
def main(networks: str | None):
    from log import configure_logging

    configure_logging(app="deployment_listener")
    network_list = (
        [n.strip() for n in networks.split(",") if n.strip()]
        if networks
        else settings.network_list
    )
    sys.exit(asyncio.run(run(network_list)))


if __name__ == "__main__":
    main()
