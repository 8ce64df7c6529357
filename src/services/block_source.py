from typing import Protocol

from web3 import AsyncWeb3

from schemas import BlockRef, ReceiptRef, TransactionRef
from utils.web3_utils import is_empty_address, parse_hex_to_int, to_hex


class BlockSource(Protocol):
    async def get_block_number(self) -> int: ...

    async def get_block(self, number: int) -> BlockRef: ...

    async def get_transaction(self, tx_hash: str) -> TransactionRef: ...

    async def get_transaction_receipt(self, tx_hash: str) -> ReceiptRef: ...


class Web3BlockSource:
    """BlockSource over an AsyncWeb3 handle.

    The same class serves the live path (persistent websocket provider) and
    the backfill job (AsyncHTTPProvider).
    """

    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_block(self, number: int) -> BlockRef:
        block = await self.w3.eth.get_block(number, full_transactions=False)
        return BlockRef(
            number=parse_hex_to_int(block["number"]),
            hash=to_hex(block["hash"]) if block.get("hash") else None,
            timestamp=parse_hex_to_int(block["timestamp"]),
            transactions=[to_hex(tx_hash) for tx_hash in block["transactions"]],
        )

    async def get_transaction(self, tx_hash: str) -> TransactionRef:
        tx = await self.w3.eth.get_transaction(tx_hash)
        recipient = tx.get("to")
        return TransactionRef(
            hash=to_hex(tx["hash"]),
            sender=to_hex(tx["from"]),
            recipient=None if is_empty_address(recipient) else to_hex(recipient),
        )

    async def get_transaction_receipt(self, tx_hash: str) -> ReceiptRef:
        receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        contract_address = receipt.get("contractAddress")
        return ReceiptRef(
            tx_hash=to_hex(receipt["transactionHash"]),
            contract_address=(
                None if is_empty_address(contract_address) else to_hex(contract_address)
            ),
            gas_used=parse_hex_to_int(receipt["gasUsed"]),
            block_number=parse_hex_to_int(receipt["blockNumber"]),
        )
