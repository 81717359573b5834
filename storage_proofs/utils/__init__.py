from storage_proofs.utils.blockchain import (
    bytes_to_nibbles,
    encode_rlp_proof,
    encode_rlp_proofs,
    get_array_slot,
    get_holder_balance_slot,
    secure_key_nibbles,
    to_bytes,
    to_bytes32,
    to_hex,
    to_int,
)
from storage_proofs.utils.file_utils import load_json

__all__ = [
    "encode_rlp_proof",
    "encode_rlp_proofs",
    "get_holder_balance_slot",
    "get_array_slot",
    "bytes_to_nibbles",
    "secure_key_nibbles",
    "to_bytes",
    "to_bytes32",
    "to_hex",
    "to_int",
    "load_json",
]
