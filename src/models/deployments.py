from datetime import datetime, timezone
import enum
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


# Closed set of monitored networks, see constants.NETWORK_SET_VERSION
class NetworkChain(str, enum.Enum):
    eth_mainnet = "eth_mainnet"
    sepolia = "sepolia"
    polygon = "polygon"
    arbitrum = "arbitrum"


# Append-only: rows are inserted by PersistenceGateway and never updated
class Deployment(SQLModel, table=True):
    __tablename__ = "deployments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    ts: datetime = Field(index=True)
    wallet_id: uuid.UUID = Field(foreign_key="wallets.id", index=True)
    network: str = Field(max_length=32)
    contract_address: str = Field(max_length=42)
    tx_hash: str = Field(max_length=66, unique=True)
    gas_used: int = Field(sa_type=sa.BigInteger)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
