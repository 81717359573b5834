"""
Shapes of the JSON-RPC payloads consumed by the proof layer.

Values are 0x-prefixed lowercase hex strings when read from raw JSON; web3
returns the same keys with ints and HexBytes instead. The parsers in
storage_proofs.proofs.types accept both.
"""

from typing import List, TypedDict

# =============================================================================
# eth_getProof
# =============================================================================


class RpcStorageProofItem(TypedDict):
    """One storage slot of an eth_getProof response."""

    key: str  # Slot identifier
    value: str  # Slot value as a quantity ("0x0" when absent)
    proof: List[str]  # RLP-encoded trie nodes, root first


class RpcAccountProof(TypedDict):
    """Full eth_getProof response."""

    address: str
    accountProof: List[str]  # RLP-encoded state trie nodes, root first
    balance: str
    codeHash: str
    nonce: str
    storageHash: str  # Root of the account storage trie
    storageProof: List[RpcStorageProofItem]


# =============================================================================
# eth_getBlockByNumber
# =============================================================================


class RpcBlockHeader(TypedDict, total=False):
    """Header fields of an eth_getBlockByNumber response."""

    hash: str  # Reported hash, compared against but never encoded
    parentHash: str
    sha3Uncles: str
    miner: str
    stateRoot: str
    transactionsRoot: str
    receiptsRoot: str
    logsBloom: str
    difficulty: str
    number: str
    gasLimit: str
    gasUsed: str
    timestamp: str
    extraData: str
    mixHash: str
    nonce: str
    baseFeePerGas: str  # London
    withdrawalsRoot: str  # Shanghai
    blobGasUsed: str  # Cancun
    excessBlobGas: str  # Cancun
    parentBeaconBlockRoot: str  # Cancun
    requestsHash: str  # Prague
