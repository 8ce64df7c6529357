import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, select

from core.exceptions import StorageUnavailableError
from models import Deployment, Wallet
from schemas import DeploymentRecord, StoreResult
from utils.web3_utils import normalize_address, normalize_tx_hash

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    def store(self, record: DeploymentRecord) -> StoreResult: ...

    def resolve_wallet_id(self, address: str) -> uuid.UUID | None: ...


_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class PersistenceGateway:
    """Idempotent deployment storage keyed by transaction hash.

    The UNIQUE constraint on ``deployments.tx_hash`` is what guarantees one
    row per transaction: the insert uses ``ON CONFLICT DO NOTHING`` and
    reports whether a row was written. The existence check that precedes it
    only saves a round trip for the common duplicate case.
    """

    def __init__(self, engine: Engine, logger: logging.Logger = logger):
        dialect = engine.dialect.name
        if dialect not in _INSERT_BY_DIALECT:
            raise ValueError(f"Unsupported database dialect: {dialect}")
        self.engine = engine
        self.logger = logger
        self._insert = _INSERT_BY_DIALECT[dialect]

    def resolve_wallet_id(self, address: str) -> uuid.UUID | None:
        address = normalize_address(address)
        try:
            with Session(self.engine) as session:
                return session.exec(
                    select(Wallet.id).where(Wallet.address == address)
                ).first()
        except OperationalError as e:
            raise StorageUnavailableError(str(e)) from e

    def _exists(self, connection: Connection, tx_hash: str) -> bool:
        return (
            connection.execute(
                select(Deployment.id).where(Deployment.tx_hash == tx_hash)
            ).first()
            is not None
        )

    def store(self, record: DeploymentRecord) -> StoreResult:
        tx_hash = normalize_tx_hash(record.tx_hash)
        deployment_id = uuid.uuid4()
        statement = (
            self._insert(Deployment)
            .values(
                id=deployment_id,
                ts=record.timestamp,
                wallet_id=record.wallet_id,
                network=record.network.value,
                contract_address=normalize_address(record.contract_address),
                tx_hash=tx_hash,
                gas_used=record.gas_used,
                created_at=datetime.now(tz=timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=["tx_hash"])
        )

        try:
            with self.engine.begin() as connection:
                if self._exists(connection, tx_hash):
                    self.logger.info("Transaction with txhash %s already exists", tx_hash)
                    return StoreResult(inserted=False)
                result = connection.execute(statement)
        except IntegrityError:
            # the wallet was removed between lookup and insert
            self.logger.warning(
                "Dropping deployment %s: wallet %s no longer tracked",
                tx_hash,
                record.wallet_address,
                exc_info=True,
            )
            return StoreResult(inserted=False)
        except OperationalError as e:
            raise StorageUnavailableError(str(e)) from e

        if result.rowcount == 0:
            self.logger.info("Transaction with txhash %s already exists", tx_hash)
            return StoreResult(inserted=False)

        self.logger.info(
            "Stored deployment %s of wallet %s on %s (tx %s)",
            record.contract_address,
            record.wallet_address,
            record.network.value,
            tx_hash,
        )
        return StoreResult(inserted=True, deployment_id=deployment_id)
