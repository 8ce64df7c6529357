from datetime import datetime, timezone
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from models.deployments import NetworkChain


class DeploymentRecord(BaseModel):
    wallet_id: uuid.UUID
    wallet_address: str
    network: NetworkChain
    contract_address: str
    tx_hash: str
    gas_used: int = Field(ge=0)
    timestamp: datetime
    block_number: int


class StoreResult(BaseModel):
    inserted: bool
    deployment_id: uuid.UUID | None = None


class DeploymentEvent(BaseModel):
    """Payload of ``deployment.created``.

    Serialized by alias into the flat wire object
    ``{ts, wallet, contract, network, txHash, gas}``. Gas travels as a
    decimal string so that javascript clients never lose precision.
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    timestamp: datetime = Field(alias="ts")
    wallet_address: str = Field(alias="wallet")
    contract_address: str = Field(alias="contract")
    network: NetworkChain
    tx_hash: str = Field(alias="txHash")
    gas_used: int = Field(alias="gas", ge=0)

    @field_serializer("timestamp")
    def serialize_timestamp(self, ts: datetime) -> str:
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    @field_serializer("gas_used")
    def serialize_gas(self, gas: int) -> str:
        return str(gas)

    @classmethod
    def from_record(cls, record: DeploymentRecord) -> "DeploymentEvent":
        return cls(
            timestamp=record.timestamp,
            wallet_address=record.wallet_address,
            contract_address=record.contract_address,
            network=record.network,
            tx_hash=record.tx_hash,
            gas_used=record.gas_used,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
