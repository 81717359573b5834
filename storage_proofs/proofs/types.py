"""
Value types for proofs, headers and checkpoints.

Every type is built from one proof-fetch snapshot and never mutated. The
``from_rpc`` constructors accept both raw JSON-RPC payloads (hex strings)
and the web3-formatted equivalents (ints and HexBytes).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple, TypedDict

from storage_proofs.shared.exceptions import DecodeError
from storage_proofs.shared.types import RpcAccountProof, RpcStorageProofItem
from storage_proofs.utils.blockchain import (
    to_bytes,
    to_bytes32,
    to_hex,
    to_int,
)

UINT128_MAX = 2**128 - 1
UINT256_MAX = 2**256 - 1


# =============================================================================
# PROOF TYPES
# =============================================================================


@dataclass(frozen=True)
class StorageProofEntry:
    """Proof of one storage slot within an account's storage trie."""

    key: bytes  # 32-byte slot identifier
    value: int  # 0 means absent
    proof_nodes: Tuple[bytes, ...] = ()  # RLP-encoded nodes, root first

    def __post_init__(self):
        if len(self.key) != 32:
            raise DecodeError(
                f"Storage key must be 32 bytes, got {len(self.key)}"
            )
        if not 0 <= self.value <= UINT256_MAX:
            raise DecodeError(f"Storage value {self.value} out of range")

    @classmethod
    def from_rpc(cls, item: Mapping[str, Any]) -> "StorageProofEntry":
        return cls(
            key=to_bytes32(item["key"]),
            value=to_int(item["value"]),
            proof_nodes=tuple(to_bytes(node) for node in item["proof"]),
        )

    @property
    def key_int(self) -> int:
        return int.from_bytes(self.key, "big")

    def to_rpc(self) -> RpcStorageProofItem:
        return {
            "key": to_hex(self.key),
            "value": hex(self.value),
            "proof": [to_hex(node) for node in self.proof_nodes],
        }


@dataclass(frozen=True)
class AccountProof:
    """Account fields and their state-trie proof, plus any storage proofs."""

    address: str
    nonce: int
    balance: int
    code_hash: bytes
    storage_hash: bytes
    account_proof_nodes: Tuple[bytes, ...]
    storage_proofs: Tuple[StorageProofEntry, ...] = field(default=())

    @classmethod
    def from_rpc(
        cls, response: Mapping[str, Any], address: Optional[str] = None
    ) -> "AccountProof":
        address = address or response.get("address")
        if not address:
            raise DecodeError("Account proof carries no address")
        return cls(
            address=to_hex(to_bytes(address)),
            nonce=to_int(response["nonce"]),
            balance=to_int(response["balance"]),
            code_hash=to_bytes32(response["codeHash"]),
            storage_hash=to_bytes32(response["storageHash"]),
            account_proof_nodes=tuple(
                to_bytes(node) for node in response["accountProof"]
            ),
            storage_proofs=tuple(
                StorageProofEntry.from_rpc(item)
                for item in response.get("storageProof", [])
            ),
        )

    def to_rpc(self) -> RpcAccountProof:
        return {
            "address": self.address,
            "accountProof": [to_hex(node) for node in self.account_proof_nodes],
            "balance": hex(self.balance),
            "codeHash": to_hex(self.code_hash),
            "nonce": hex(self.nonce),
            "storageHash": to_hex(self.storage_hash),
            "storageProof": [entry.to_rpc() for entry in self.storage_proofs],
        }


class Checkpoint(NamedTuple):
    """
    One MiniMe checkpoint: a balance recorded from ``block`` onwards.

    Stored packed in one slot, block in the low 16 bytes and balance in the
    high 16 bytes.
    """

    balance: int
    block: int

    @classmethod
    def from_value(cls, value: Any) -> "Checkpoint":
        packed = int.from_bytes(to_bytes32(value), "big")
        return cls(balance=packed >> 128, block=packed & UINT128_MAX)

    def pack(self) -> bytes:
        if self.balance > UINT128_MAX or self.block > UINT128_MAX:
            raise ValueError("Checkpoint fields must fit in 128 bits")
        return ((self.balance << 128) | self.block).to_bytes(32, "big")


# =============================================================================
# BLOCK TYPES
# =============================================================================

# RPC name -> attribute name, in canonical header order
HEADER_FIELD_NAMES: Tuple[Tuple[str, str], ...] = (
    ("parentHash", "parent_hash"),
    ("sha3Uncles", "sha3_uncles"),
    ("miner", "miner"),
    ("stateRoot", "state_root"),
    ("transactionsRoot", "transactions_root"),
    ("receiptsRoot", "receipts_root"),
    ("logsBloom", "logs_bloom"),
    ("difficulty", "difficulty"),
    ("number", "number"),
    ("gasLimit", "gas_limit"),
    ("gasUsed", "gas_used"),
    ("timestamp", "timestamp"),
    ("extraData", "extra_data"),
    ("mixHash", "mix_hash"),
    ("nonce", "nonce"),
    ("baseFeePerGas", "base_fee_per_gas"),
    ("withdrawalsRoot", "withdrawals_root"),
    ("blobGasUsed", "blob_gas_used"),
    ("excessBlobGas", "excess_blob_gas"),
    ("parentBeaconBlockRoot", "parent_beacon_block_root"),
    ("requestsHash", "requests_hash"),
)

# Fields encoded as minimal big-endian integers; every other field keeps its
# exact byte width (hashes, address, bloom, 8-byte nonce)
QUANTITY_FIELDS = frozenset(
    {
        "difficulty",
        "number",
        "gasLimit",
        "gasUsed",
        "timestamp",
        "baseFeePerGas",
        "blobGasUsed",
        "excessBlobGas",
    }
)


@dataclass(frozen=True)
class BlockHeader:
    """Header fields of one block plus the hash the provider reported for it."""

    parent_hash: bytes
    sha3_uncles: bytes
    miner: bytes
    state_root: bytes
    transactions_root: bytes
    receipts_root: bytes
    logs_bloom: bytes
    difficulty: int
    number: int
    gas_limit: int
    gas_used: int
    timestamp: int
    extra_data: bytes
    mix_hash: bytes
    nonce: bytes
    hash: bytes
    base_fee_per_gas: Optional[int] = None
    withdrawals_root: Optional[bytes] = None
    blob_gas_used: Optional[int] = None
    excess_blob_gas: Optional[int] = None
    parent_beacon_block_root: Optional[bytes] = None
    requests_hash: Optional[bytes] = None

    @classmethod
    def from_rpc(cls, block: Mapping[str, Any]) -> "BlockHeader":
        values: Dict[str, Any] = {}
        for rpc_name, attr in HEADER_FIELD_NAMES:
            raw = block.get(rpc_name)
            if raw is None:
                continue
            values[attr] = (
                to_int(raw) if rpc_name in QUANTITY_FIELDS else to_bytes(raw)
            )
        if block.get("hash") is None:
            raise DecodeError("Block carries no reported hash")
        values["hash"] = to_bytes32(block["hash"])
        try:
            return cls(**values)
        except TypeError as e:
            raise DecodeError(f"Incomplete block header: {e}") from e

    def get(self, rpc_name: str) -> Any:
        """Field value by its RPC name, or None when the block lacks it."""
        return getattr(self, dict(HEADER_FIELD_NAMES)[rpc_name])


class BlockInfo(TypedDict):
    """Ethereum block information for proof verification."""

    block_number: int  # Block number
    block_hash: str  # Block hash (hex string)
    block_timestamp: int  # Block timestamp
    rlp_block_header: str  # RLP encoded block header


@dataclass(frozen=True)
class FullProof:
    """A proof bundle with every artifact needed for on-chain submission."""

    proof: AccountProof
    header: BlockHeader
    block_header_rlp: bytes
    account_proof_rlp: bytes
    storage_proofs_rlp: Tuple[bytes, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proof": self.proof.to_rpc(),
            "block_number": self.header.number,
            "block_hash": to_hex(self.header.hash),
            "state_root": to_hex(self.header.state_root),
            "block_header_rlp": to_hex(self.block_header_rlp),
            "account_proof_rlp": to_hex(self.account_proof_rlp),
            "storage_proofs_rlp": [to_hex(p) for p in self.storage_proofs_rlp],
        }
