"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests: a small
builder for hand-made Merkle-Patricia tries, an in-memory state provider and
the recorded MiniMe checkpoint proofs.
"""

import json
import os
from itertools import count
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest
import rlp
from eth_utils import keccak

from storage_proofs.proofs.types import (
    AccountProof,
    BlockHeader,
    StorageProofEntry,
)
from storage_proofs.shared.exceptions import NotFoundError, TransportError
from storage_proofs.shared.services.provider import StateProvider
from storage_proofs.utils.blockchain import bytes_to_nibbles, to_bytes32

FIXTURES_DIR = Path(__file__).parent / "fixtures"

GENESIS_BLOCK = {
    "hash": "0xd4e56740f876aef8c010b86a40d5f56745a118d0906a34e69aec8c0db1cb8fa3",
    "parentHash": "0x" + "00" * 32,
    "sha3Uncles": "0x1dcc4de8dec75d7aab85b567b6ccd41ad312451b948a7413f0a142fd40d49347",
    "miner": "0x" + "00" * 20,
    "stateRoot": "0xd7f8974fb5ac78d9ac099b9ad5018bedc2ce0a72dad1827a1709da30580f0544",
    "transactionsRoot": "0x56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421",
    "receiptsRoot": "0x56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421",
    "logsBloom": "0x" + "00" * 256,
    "difficulty": "0x400000000",
    "number": "0x0",
    "gasLimit": "0x1388",
    "gasUsed": "0x0",
    "timestamp": "0x0",
    "extraData": "0x11bbe8db4e347b4e8c937c1c8370e4b5ed33adb3db69cbdb7a38e1e50b1b82fa",
    "mixHash": "0x" + "00" * 32,
    "nonce": "0x0000000000000042",
}


# =============================================================================
# TRIE BUILDING
# =============================================================================


def hex_prefix(nibbles: Sequence[int], is_leaf: bool) -> bytes:
    """Compact encoding of a partial path"""
    flag = 2 if is_leaf else 0
    if len(nibbles) % 2:
        prefixed = [flag + 1] + list(nibbles)
    else:
        prefixed = [flag, 0] + list(nibbles)
    return bytes(
        prefixed[i] * 16 + prefixed[i + 1] for i in range(0, len(prefixed), 2)
    )


class TrieBuilder:
    """Builds the few trie shapes the verifier tests need."""

    @staticmethod
    def leaf(path: Sequence[int], value: bytes) -> bytes:
        return rlp.encode([hex_prefix(path, True), value])

    @staticmethod
    def extension(path: Sequence[int], child_hash: bytes) -> bytes:
        return rlp.encode([hex_prefix(path, False), child_hash])

    @staticmethod
    def branch(children: Dict[int, Any], value: bytes = b"") -> bytes:
        items: List[Any] = [children.get(i, b"") for i in range(16)]
        items.append(value)
        return rlp.encode(items)

    @staticmethod
    def key_path(raw_key: bytes) -> List[int]:
        return bytes_to_nibbles(keccak(raw_key))

    @staticmethod
    def find_key(predicate: Callable[[List[int]], bool]) -> bytes:
        """First 32-byte key (0, 1, 2, ...) whose hashed path satisfies ``predicate``"""
        for i in count():
            key = i.to_bytes(32, "big")
            if predicate(bytes_to_nibbles(keccak(key))):
                return key
        raise AssertionError("unreachable")

    def single_leaf(self, raw_key: bytes, value: bytes) -> Tuple[bytes, List[bytes]]:
        """Secure trie holding one key: (root, proof)"""
        node = self.leaf(self.key_path(raw_key), value)
        return keccak(node), [node]

    def three_level(self, raw_key: bytes, value: bytes) -> Dict[str, Any]:
        """
        Extension -> branch -> leaf trie around ``raw_key``.

        The extension holds the first two nibbles of the key path, the branch
        has the key's leaf under the third nibble and an opaque sibling hash
        under another one.
        """
        path = self.key_path(raw_key)
        leaf = self.leaf(path[3:], value)
        sibling_nibble = (path[2] + 1) % 16
        branch = self.branch(
            {path[2]: keccak(leaf), sibling_nibble: keccak(b"sibling")}
        )
        extension = self.extension(path[:2], keccak(branch))
        return {
            "root": keccak(extension),
            "path": path,
            "sibling_nibble": sibling_nibble,
            "nodes": [extension, branch, leaf],
        }


@pytest.fixture
def trie_builder() -> TrieBuilder:
    return TrieBuilder()


@pytest.fixture
def three_level_trie(trie_builder) -> Dict[str, Any]:
    """Three-level storage trie with slot 7 holding 0x2a (rlp of 42)"""
    key = (7).to_bytes(32, "big")
    trie = trie_builder.three_level(key, rlp.encode(b"\x2a"))
    trie["key"] = key
    return trie


# =============================================================================
# IN-MEMORY PROVIDER
# =============================================================================


class InMemoryProvider(StateProvider):
    """
    StateProvider serving storage from a dict.

    Storage proofs carry no trie nodes; tests using this provider exercise
    slot selection, not trie verification.
    """

    def __init__(self, block_number: int = 20_000_000):
        self.block_number = block_number
        self.storage: Dict[Tuple[str, int], int] = {}
        self.balances: Dict[Tuple[str, str], int] = {}
        self.failing_slots: set = set()
        self.headers: Dict[int, BlockHeader] = {}
        self.storage_reads: List[Tuple[str, int, int]] = []
        self.proof_requests: List[Tuple[str, List[int], int]] = []

    def set_storage(self, address: str, slot: Any, value: int) -> None:
        self.storage[(address.lower(), int.from_bytes(to_bytes32(slot), "big"))] = value

    def set_balance(self, token: str, holder: str, balance: int) -> None:
        self.balances[(token.lower(), holder.lower())] = balance

    async def fetch_storage_proof(self, address, keys, block_number):
        slots = [int.from_bytes(to_bytes32(key), "big") for key in keys]
        self.proof_requests.append((address.lower(), slots, block_number))
        return AccountProof(
            address=address.lower(),
            nonce=1,
            balance=0,
            code_hash=b"\x00" * 32,
            storage_hash=b"\x00" * 32,
            account_proof_nodes=(),
            storage_proofs=tuple(
                StorageProofEntry(
                    key=slot.to_bytes(32, "big"),
                    value=self.storage.get((address.lower(), slot), 0),
                )
                for slot in slots
            ),
        )

    async def fetch_block_header(self, block_number):
        if block_number not in self.headers:
            raise NotFoundError(f"Block {block_number} not found")
        return self.headers[block_number]

    async def get_current_block_number(self):
        return self.block_number

    async def get_storage_at(self, address, slot, block_number):
        slot_int = int.from_bytes(to_bytes32(slot), "big")
        self.storage_reads.append((address.lower(), slot_int, block_number))
        if slot_int in self.failing_slots:
            raise TransportError(f"eth_getStorageAt failed for slot {hex(slot_int)}")
        return self.storage.get((address.lower(), slot_int), 0).to_bytes(32, "big")

    async def call_balance_of(self, token, holder, block_number=None):
        return self.balances.get((token.lower(), holder.lower()), 0)


@pytest.fixture
def provider() -> InMemoryProvider:
    return InMemoryProvider()


# =============================================================================
# DATA
# =============================================================================


@pytest.fixture
def genesis_block() -> Dict[str, Any]:
    """Mainnet genesis block as returned by eth_getBlockByNumber"""
    return dict(GENESIS_BLOCK)


@pytest.fixture(scope="session")
def minime_proofs() -> Dict[str, Any]:
    """Recorded mainnet checkpoint proofs of two holders of a MiniMe token"""
    with open(FIXTURES_DIR / "minime_checkpoint_proofs.json") as f:
        return json.load(f)


@pytest.fixture
def token_address() -> str:
    return "0x4d98039ab1bfd7b7a7d6f0629bebb7aefd36286e"


@pytest.fixture
def holder_address() -> str:
    return "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"


@pytest.fixture
def mainnet_rpc_url() -> Optional[str]:
    url = os.getenv("ETHEREUM_MAINNET_RPC_URL")
    if not url:
        pytest.skip("ETHEREUM_MAINNET_RPC_URL not set")
    return url


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: tests that need a live Ethereum node"
    )
