"""Byte, hex and slot helpers shared by the proof generators and verifiers"""

from typing import Any, List, Sequence

from eth_abi import encode
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from storage_proofs.shared.exceptions import DecodeError
from storage_proofs.utils import rlp_codec


def to_bytes(value: Any) -> bytes:
    """Coerce an RPC value (hex string, HexBytes, bytes or int) to bytes"""
    if isinstance(value, int) and not isinstance(value, bool):
        return rlp_codec.int_to_bytes(value)
    try:
        return bytes(HexBytes(value))
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Invalid hex value {value!r}: {e}") from e


def to_int(value: Any) -> int:
    """Coerce an RPC quantity (hex string, bytes or int) to int"""
    if isinstance(value, bool):
        raise DecodeError(f"Invalid quantity {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16)
        except ValueError as e:
            raise DecodeError(f"Invalid quantity {value!r}") from e
    return int.from_bytes(to_bytes(value), "big")


def to_bytes32(value: Any) -> bytes:
    """Coerce a value to exactly 32 bytes, left-padding shorter inputs"""
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0 or value >= 2**256:
            raise DecodeError(f"Value {value} does not fit in 32 bytes")
        return value.to_bytes(32, "big")
    raw = to_bytes(value)
    if len(raw) > 32:
        raise DecodeError(f"Value is {len(raw)} bytes long, expected at most 32")
    return raw.rjust(32, b"\x00")


def to_hex(value: bytes) -> str:
    """Lowercase 0x-prefixed hex"""
    return "0x" + bytes(value).hex()


def bytes_to_nibbles(data: bytes) -> List[int]:
    """Split bytes into their high/low half-bytes"""
    nibbles = []
    for byte in data:
        nibbles.append(byte >> 4)
        nibbles.append(byte & 0x0F)
    return nibbles


def secure_key_nibbles(raw_key: bytes) -> List[int]:
    """Trie path of a key in a secure trie: the nibbles of keccak256(key)"""
    return bytes_to_nibbles(keccak(raw_key))


def get_holder_balance_slot(holder: str, mapping_slot: int) -> bytes:
    """
    Storage slot of ``mapping[holder]`` for a mapping declared at ``mapping_slot``.

    Equivalent to keccak256(abi.encodePacked(bytes32(holder), mapping_slot)).
    """
    return keccak(
        encode(["address", "uint256"], [to_checksum_address(holder), mapping_slot])
    )


def get_array_slot(position: int) -> bytes:
    """Storage slot of the first element of a dynamic array stored at ``position``"""
    return keccak(encode(["uint256"], [position]))


def slot_to_int(slot: bytes) -> int:
    return int.from_bytes(slot, byteorder="big")


def int_to_slot(value: int) -> bytes:
    return value.to_bytes(32, byteorder="big")


def encode_rlp_proof(proof_nodes: Sequence[Any]) -> bytes:
    """Encode one proof (list of RLP-encoded nodes) as an RLP list of nodes"""
    return rlp_codec.reencode_list([to_bytes(node) for node in proof_nodes])


def encode_rlp_proofs(proofs: dict) -> tuple[bytes, List[bytes]]:
    """Encode the account proof and each storage proof of an eth_getProof response"""
    account_proof = encode_rlp_proof(proofs["accountProof"])
    storage_proofs = [
        encode_rlp_proof(proof["proof"]) for proof in proofs["storageProof"]
    ]
    return account_proof, storage_proofs
