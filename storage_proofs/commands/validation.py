from eth_utils import is_address, to_checksum_address

from storage_proofs.shared.constants import GlobalConstants
from storage_proofs.shared.exceptions import DecodeError
from storage_proofs.utils.blockchain import to_bytes


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return checksum ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return to_checksum_address(address)


def validate_chain_id(chain_id: int) -> None:
    """Validate chain ID"""
    valid_chain_ids = set(GlobalConstants.CHAIN_ID_TO_RPC)
    if chain_id not in valid_chain_ids:
        raise ValueError(
            f"Invalid chain_id: {chain_id}. Must be one of {sorted(valid_chain_ids)}"
        )


def validate_block_number(block_number: int) -> int:
    """Validate a block number given on the command line"""
    if block_number < 0:
        raise ValueError("Block number must be a non-negative integer")
    return block_number


def validate_hash(value: str, param_name: str = "hash") -> bytes:
    """Validate a 0x-prefixed 32-byte hash"""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"Invalid {param_name}: expected 0x-prefixed hex")
    try:
        raw = to_bytes(value)
    except DecodeError as e:
        raise ValueError(f"Invalid {param_name}: {e.message}") from e
    if len(raw) != 32:
        raise ValueError(
            f"Invalid {param_name}: expected 32 bytes, got {len(raw)}"
        )
    return raw
