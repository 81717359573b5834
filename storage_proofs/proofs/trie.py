"""
Merkle-Patricia trie proof verification.

Walks an ordered list of RLP-encoded trie nodes from a trusted root hash down
the nibble path of a key and returns the stored value, or ``None`` when the
proof establishes that the key is absent. Anything else (a hash mismatch, a
malformed node, a proof that stops early or carries extra nodes) raises
ProofIntegrityError and is never read as absence.

Absence is accepted in exactly three terminal shapes, each of which must be
the last node supplied:
- a branch whose slot for the next nibble is empty
- a leaf whose remaining path differs from the key's
- an extension whose path diverges from the key's
"""

from typing import List, Optional, Sequence, Tuple, Union

from eth_utils import keccak

from storage_proofs.shared.constants import ProofConstants
from storage_proofs.shared.exceptions import DecodeError, ProofIntegrityError
from storage_proofs.utils import rlp_codec
from storage_proofs.utils.blockchain import to_bytes

EMPTY_TRIE_ROOT = to_bytes(ProofConstants.EMPTY_TRIE_ROOT)

BRANCH_WIDTH = 17

NodeRef = Union[bytes, list]


def decode_hex_prefix(encoded_path: bytes) -> Tuple[List[int], bool]:
    """
    Decode a compact (hex-prefix) path.

    Returns:
        (nibbles, is_leaf)
    """
    if not encoded_path:
        raise ProofIntegrityError("Empty compact path", check="trie_node")
    flag = encoded_path[0] >> 4
    if flag > 3:
        raise ProofIntegrityError(
            f"Invalid compact path flag {flag}", check="trie_node"
        )
    nibbles = []
    for byte in encoded_path:
        nibbles.append(byte >> 4)
        nibbles.append(byte & 0x0F)
    is_leaf = flag >= 2
    if flag % 2:
        return nibbles[1:], is_leaf
    if nibbles[1] != 0:
        raise ProofIntegrityError(
            "Non-zero padding nibble in even compact path", check="trie_node"
        )
    return nibbles[2:], is_leaf


class _ProofWalk:
    """Cursor over the proof nodes of one verification."""

    def __init__(self, root_hash: bytes, key_nibbles: Sequence[int], proof_nodes: Sequence[bytes]):
        self.path = list(key_nibbles)
        self.position = 0
        self.nodes = [bytes(node) for node in proof_nodes]
        self.consumed = 0
        self.expected: bytes = bytes(root_hash)

    def error(self, message: str) -> ProofIntegrityError:
        return ProofIntegrityError(
            f"{message} (proof node {self.consumed})", check="trie"
        )

    def next_node(self) -> list:
        """Consume the next proof node after checking it against the expected reference."""
        if self.consumed >= len(self.nodes):
            raise self.error("Proof ended before the key path was resolved")
        raw = self.nodes[self.consumed]
        if self.consumed == 0 or len(raw) >= 32:
            if keccak(raw) != self.expected:
                raise self.error("Node hash does not match its reference")
        elif raw != self.expected:
            raise self.error("Embedded node does not match its parent")
        self.consumed += 1
        return self._decode(raw)

    def _decode(self, raw: bytes) -> list:
        try:
            node = rlp_codec.decode(raw)
        except DecodeError as e:
            raise self.error(f"Malformed trie node: {e.message}") from e
        if not isinstance(node, list):
            raise self.error("Trie node is not an RLP list")
        return node

    def follow(self, ref: NodeRef) -> Optional[list]:
        """
        Resolve a child reference.

        Returns the child node when it is embedded in its parent, or None when
        the next proof node has to be fetched against the 32-byte hash.
        """
        if isinstance(ref, list):
            # Some provers repeat embedded nodes as separate proof entries
            if (
                self.consumed < len(self.nodes)
                and self.nodes[self.consumed] == rlp_codec.encode(ref)
            ):
                self.consumed += 1
            return ref
        if len(ref) != 32:
            raise self.error(f"Child reference of {len(ref)} bytes")
        self.expected = ref
        return None

    def remaining(self) -> List[int]:
        return self.path[self.position:]

    def finish(self, value: Optional[bytes]) -> Optional[bytes]:
        if self.consumed != len(self.nodes):
            raise self.error(
                f"{len(self.nodes) - self.consumed} unused node(s) after the proof terminated"
            )
        return value


def verify_proof(
    root_hash: bytes,
    key_nibbles: Sequence[int],
    proof_nodes: Sequence[bytes],
) -> Optional[bytes]:
    """
    Verify a trie proof and return the value stored under the key.

    Args:
        root_hash: Trusted 32-byte trie root
        key_nibbles: Full nibble path of the key (for a secure trie, the
            nibbles of keccak256(raw_key))
        proof_nodes: RLP-encoded nodes, root first

    Returns:
        The stored value bytes, or None for a valid proof of absence.

    Raises:
        ProofIntegrityError: The proof does not connect the root to a
            terminal node along the key path.
    """
    if len(root_hash) != 32:
        raise ProofIntegrityError(
            f"Root hash must be 32 bytes, got {len(root_hash)}", check="trie"
        )
    if not proof_nodes:
        if bytes(root_hash) == EMPTY_TRIE_ROOT:
            return None
        raise ProofIntegrityError("Empty proof for a non-empty trie", check="trie")

    walk = _ProofWalk(root_hash, key_nibbles, proof_nodes)
    node: Optional[list] = None

    while True:
        if node is None:
            node = walk.next_node()

        if len(node) == BRANCH_WIDTH:
            if walk.position == len(walk.path):
                value = node[16]
                if isinstance(value, list):
                    raise walk.error("Branch value is not a byte string")
                return walk.finish(value or None)
            child = node[walk.path[walk.position]]
            walk.position += 1
            if child == b"":
                return walk.finish(None)
            node = walk.follow(child)
            continue

        if len(node) == 2:
            if not isinstance(node[0], bytes):
                raise walk.error("Compact path is not a byte string")
            partial, is_leaf = decode_hex_prefix(node[0])
            remaining = walk.remaining()

            if is_leaf:
                if isinstance(node[1], list):
                    raise walk.error("Leaf value is not a byte string")
                if remaining == partial:
                    return walk.finish(node[1])
                return walk.finish(None)

            if not partial:
                raise walk.error("Extension with an empty path")
            if remaining[: len(partial)] != partial:
                return walk.finish(None)
            walk.position += len(partial)
            node = walk.follow(node[1])
            continue

        raise walk.error(f"Trie node with {len(node)} items")
