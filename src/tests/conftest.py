import asyncio
import contextlib
import uuid
from collections import defaultdict

import pytest
from sqlalchemy import event, func
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from models import Deployment, Wallet
from schemas import BlockRef, ReceiptRef, TransactionRef
from services.bus import BusMessage
from services.persistence import PersistenceGateway

WALLET_ADDRESS = "0x" + "aa" * 20
OTHER_ADDRESS = "0x" + "bb" * 20
CONTRACT_ADDRESS = "0x" + "cc" * 20
RECIPIENT_ADDRESS = "0x" + "dd" * 20


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def count_deployments(engine: Engine, wallet_id: uuid.UUID | None = None) -> int:
    with Session(engine) as session:
        statement = select(func.count()).select_from(Deployment)
        if wallet_id is not None:
            statement = statement.where(Deployment.wallet_id == wallet_id)
        return session.exec(statement).one()


@pytest.fixture
def engine(tmp_path):
    # file-backed so every worker thread gets its own connection
    engine = create_engine(
        f"sqlite:///{tmp_path / 'contractwatch.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def gateway(engine):
    return PersistenceGateway(engine)


@pytest.fixture
def wallet(db_session: Session) -> Wallet:
    wallet = Wallet(address=WALLET_ADDRESS, name="deployer")
    db_session.add(wallet)
    db_session.commit()
    db_session.refresh(wallet)
    return wallet


class FakeBlockSource:
    """In-memory chain: blocks, transactions and receipts keyed by hash."""

    def __init__(self, head: int = 0):
        self.head = head
        self.blocks: dict[int, BlockRef] = {}
        self.transactions: dict[str, TransactionRef] = {}
        self.receipts: dict[str, ReceiptRef] = {}
        self.failing_transactions: set[str] = set()
        self.failing_blocks: set[int] = set()
        self.receipt_calls = 0

    def add_transaction(
        self,
        block_number: int,
        hash: str,
        sender: str,
        recipient: str | None = None,
        contract_address: str | None = None,
        gas_used: int = 21000,
        timestamp: int = 1_700_000_000,
    ):
        block = self.blocks.get(block_number) or BlockRef(
            number=block_number, hash=tx_hash(10_000 + block_number), timestamp=timestamp
        )
        block.transactions.append(hash)
        self.blocks[block_number] = block
        self.transactions[hash] = TransactionRef(hash=hash, sender=sender, recipient=recipient)
        self.receipts[hash] = ReceiptRef(
            tx_hash=hash,
            contract_address=contract_address,
            gas_used=gas_used,
            block_number=block_number,
        )
        self.head = max(self.head, block_number)

    async def get_block_number(self) -> int:
        return self.head

    async def get_block(self, number: int) -> BlockRef:
        if number in self.failing_blocks:
            raise ConnectionError(f"block {number} unavailable")
        return self.blocks.get(number) or BlockRef(
            number=number, timestamp=1_700_000_000 + number, transactions=[]
        )

    async def get_transaction(self, hash: str) -> TransactionRef:
        if hash in self.failing_transactions:
            raise TimeoutError("node unavailable")
        return self.transactions[hash]

    async def get_transaction_receipt(self, hash: str) -> ReceiptRef | None:
        self.receipt_calls += 1
        return self.receipts.get(hash)


class FakeRegistry:
    def __init__(self, wallets: dict[str, uuid.UUID] | None = None):
        self.wallets = dict(wallets or {})
        self.lookups: list[str] = []

    def resolve_wallet_id(self, address: str):
        self.lookups.append(address)
        return self.wallets.get(address.lower())


class FakeBus:
    """Publisher and subscriber backed by per-subscription asyncio queues."""

    def __init__(self):
        self.published: list[tuple[str, str]] = []
        self.subscriptions: dict[str, list[asyncio.Queue]] = defaultdict(list)
        self.fail = False
        self.closed = False

    async def publish(self, topic: str, payload: str) -> None:
        if self.fail:
            raise ConnectionError("bus unavailable")
        self.published.append((topic, payload))
        for queue in list(self.subscriptions[topic]):
            queue.put_nowait(BusMessage(topic, payload))

    @contextlib.asynccontextmanager
    async def subscribe(self, *topics: str):
        queue: asyncio.Queue = asyncio.Queue()
        for topic in topics:
            self.subscriptions[topic].append(queue)

        async def messages():
            while True:
                yield await queue.get()

        try:
            yield messages()
        finally:
            for topic in topics:
                self.subscriptions[topic].remove(queue)

    def subscriber_count(self, topic: str) -> int:
        return len(self.subscriptions[topic])

    async def close(self):
        self.closed = True


@pytest.fixture
def block_source():
    return FakeBlockSource()


@pytest.fixture
def bus():
    return FakeBus()
