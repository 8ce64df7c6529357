from hexbytes import HexBytes
from web3 import Web3

ADDRESS_LENGTH = 20
TX_HASH_LENGTH = 32


def to_hex(value) -> str:
    """Render bytes-like or hex string values as a lowercase 0x-prefixed string."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    value = str(value).lower()
    if not value.startswith("0x"):
        value = "0x" + value
    return value


def _normalize(value, length: int, kind: str) -> str:
    hex_value = to_hex(value)
    try:
        raw = HexBytes(hex_value)
    except ValueError:
        raise ValueError(f"Invalid {kind}: {value!r}") from None
    if len(raw) != length:
        raise ValueError(f"Invalid {kind} length {len(raw)}: {value!r}")
    return hex_value


def normalize_address(value) -> str:
    return _normalize(value, ADDRESS_LENGTH, "address")


def normalize_tx_hash(value) -> str:
    return _normalize(value, TX_HASH_LENGTH, "transaction hash")


def is_empty_address(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (bytes, bytearray)):
        return len(value) == 0
    return str(value).strip().lower() in ("", "0x")


def parse_hex_to_int(value) -> int:
    """Block numbers arrive as ints from formatted responses and as hex strings from raw ones."""
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(bytes(value), byteorder="big")
    return Web3.to_int(hexstr=value) if str(value).startswith("0x") else int(value)
