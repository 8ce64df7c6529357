from pydantic import BaseModel


class BlockRef(BaseModel):
    number: int
    hash: str | None = None
    # unix seconds, as reported by the block header
    timestamp: int
    transactions: list[str] = []


class TransactionRef(BaseModel):
    hash: str
    sender: str
    # None for contract creation
    recipient: str | None = None


class ReceiptRef(BaseModel):
    tx_hash: str
    contract_address: str | None = None
    gas_used: int
    block_number: int | None = None
