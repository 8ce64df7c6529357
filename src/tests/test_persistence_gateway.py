import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlmodel import Session, create_engine, select

from conftest import (
    CONTRACT_ADDRESS,
    OTHER_ADDRESS,
    WALLET_ADDRESS,
    count_deployments,
    tx_hash,
)
from core.exceptions import StorageUnavailableError
from models import Deployment, NetworkChain, Wallet
from schemas import DeploymentRecord
from services.persistence import PersistenceGateway


def make_record(wallet: Wallet, hash: str = tx_hash(1), **overrides) -> DeploymentRecord:
    values = dict(
        wallet_id=wallet.id,
        wallet_address=wallet.address,
        network=NetworkChain.sepolia,
        contract_address=CONTRACT_ADDRESS,
        tx_hash=hash,
        gas_used=210000,
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        block_number=100,
    )
    values.update(overrides)
    return DeploymentRecord(**values)


def test_store_inserts_once(gateway: PersistenceGateway, wallet: Wallet, db_session: Session):
    record = make_record(wallet)

    first = gateway.store(record)
    second = gateway.store(record)

    assert first.inserted is True
    assert first.deployment_id is not None
    assert second.inserted is False
    rows = db_session.exec(select(Deployment)).all()
    assert len(rows) == 1
    assert rows[0].id == first.deployment_id
    assert rows[0].gas_used == 210000
    assert rows[0].network == "sepolia"


def test_store_normalizes_case(gateway: PersistenceGateway, wallet: Wallet, db_session: Session):
    upper = make_record(
        wallet,
        hash=tx_hash(7).upper().replace("0X", "0x"),
        contract_address=CONTRACT_ADDRESS.upper().replace("0X", "0x"),
    )

    assert gateway.store(upper).inserted is True
    assert gateway.store(make_record(wallet, hash=tx_hash(7))).inserted is False

    row = db_session.exec(select(Deployment)).one()
    assert row.tx_hash == tx_hash(7)
    assert row.contract_address == CONTRACT_ADDRESS


def test_unique_constraint_is_the_guarantee(gateway: PersistenceGateway, wallet: Wallet):
    record = make_record(wallet)
    assert gateway.store(record).inserted is True

    # without the pre-check the insert itself must still collapse the duplicate
    with patch.object(PersistenceGateway, "_exists", return_value=False):
        assert gateway.store(record).inserted is False

    assert count_deployments(gateway.engine) == 1


def test_concurrent_store_converges_to_one_row(gateway: PersistenceGateway, wallet: Wallet):
    record = make_record(wallet, hash=tx_hash(42))

    with patch.object(PersistenceGateway, "_exists", return_value=False):
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: gateway.store(record), range(8)))

    assert sum(result.inserted for result in results) == 1
    assert count_deployments(gateway.engine, wallet.id) == 1


def test_resolve_wallet_id_ignores_case(gateway: PersistenceGateway, wallet: Wallet):
    assert gateway.resolve_wallet_id(WALLET_ADDRESS) == wallet.id
    assert gateway.resolve_wallet_id("0x" + "AA" * 20) == wallet.id
    assert gateway.resolve_wallet_id(OTHER_ADDRESS) is None


def test_resolve_wallet_id_rejects_malformed_address(gateway: PersistenceGateway):
    with pytest.raises(ValueError):
        gateway.resolve_wallet_id("0x1234")


def test_storage_unavailable(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    gateway = PersistenceGateway(engine)

    with pytest.raises(StorageUnavailableError):
        gateway.resolve_wallet_id(WALLET_ADDRESS)


def test_wallet_removed_before_insert_is_dropped(
    gateway: PersistenceGateway, wallet: Wallet, db_session: Session
):
    record = make_record(wallet)
    db_session.delete(wallet)
    db_session.commit()

    result = gateway.store(record)

    assert result.inserted is False
    assert result.deployment_id is None
    assert count_deployments(gateway.engine) == 0


def test_unknown_wallet_id_is_dropped(gateway: PersistenceGateway, wallet: Wallet):
    record = make_record(wallet, wallet_id=uuid.uuid4())

    assert gateway.store(record).inserted is False
    assert count_deployments(gateway.engine) == 0
