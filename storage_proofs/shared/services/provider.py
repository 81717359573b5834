"""
State provider interface.

Everything the proof generators need from an Ethereum node. Implementations
own transport concerns (connection handling, retries, rate limits) and
return parsed value types; the verification code never talks to a node.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

from storage_proofs.proofs.types import AccountProof, BlockHeader

SlotKey = Union[int, bytes, str]


class StateProvider(ABC):
    """Read-only access to chain state at a fixed block."""

    # Name used to resolve the header variant in the hardfork table
    chain_name: str = "mainnet"

    @abstractmethod
    async def fetch_storage_proof(
        self, address: str, keys: Sequence[SlotKey], block_number: int
    ) -> AccountProof:
        """eth_getProof for ``address`` and ``keys`` at ``block_number``"""

    @abstractmethod
    async def fetch_block_header(self, block_number: int) -> BlockHeader:
        """Header fields plus the reported hash of ``block_number``"""

    @abstractmethod
    async def get_current_block_number(self) -> int:
        pass

    @abstractmethod
    async def get_storage_at(
        self, address: str, slot: SlotKey, block_number: int
    ) -> bytes:
        """Raw 32-byte value of one storage slot"""

    @abstractmethod
    async def call_balance_of(
        self, token: str, holder: str, block_number: Optional[int] = None
    ) -> int:
        """ERC20 ``balanceOf(holder)`` on ``token``"""
