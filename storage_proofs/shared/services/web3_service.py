"""
Web3 Service module for reading proof material from Ethereum nodes.

This module provides a Web3Service class implementing StateProvider on top of
an AsyncWeb3 connection. Every RPC call goes through the shared retry policy;
answers are normalized into the proof value types before being returned.
"""

from typing import Any, Dict, Optional, Sequence

from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import BlockNotFound
from web3.types import RPCEndpoint

from storage_proofs.proofs.types import AccountProof, BlockHeader
from storage_proofs.shared.constants import (
    ERC20_BALANCE_OF_ABI,
    GlobalConstants,
)
from storage_proofs.shared.exceptions import (
    NonRetryableException,
    NotFoundError,
    TransportError,
)
from storage_proofs.shared.logging import get_logger
from storage_proofs.shared.retry import RPC_RETRY_CONFIG, RetryConfig
from storage_proofs.shared.services.provider import SlotKey, StateProvider
from storage_proofs.shared.types import RpcBlockHeader
from storage_proofs.utils.blockchain import to_bytes32, to_hex

_logger = get_logger(__name__)


class Web3Service(StateProvider):
    """
    A service class wrapping one AsyncWeb3 connection.

    Instances are cached per chain id; use ``get_instance`` rather than the
    constructor unless a custom RPC URL is needed.
    """

    _instances: Dict[int, "Web3Service"] = {}

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        retry_config: RetryConfig = RPC_RETRY_CONFIG,
    ):
        """
        Initialize the Web3Service.

        Args:
            chain_id (int): The chain ID to use.
            rpc_url (str): The RPC URL to use.
            retry_config (RetryConfig): Retry policy applied to every call.
        """
        self.chain_id = chain_id
        self.chain_name = GlobalConstants.get_chain_name(chain_id)
        self.retry_config = retry_config
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))

    @classmethod
    def get_instance(cls, chain_id: int) -> "Web3Service":
        """Get or create a Web3Service instance for a specific chain"""
        if chain_id not in cls._instances:
            rpc_url = GlobalConstants.get_rpc_url(chain_id)
            cls._instances[chain_id] = cls(chain_id, rpc_url)

        return cls._instances[chain_id]

    async def _call(self, name: str, operation, *args: Any, **kwargs: Any) -> Any:
        """Run one RPC call through the retry policy and map its failures"""
        try:
            return await self.retry_config.run(
                operation, *args, operation_name=name, **kwargs
            )
        except BlockNotFound as e:
            raise NotFoundError(f"{name}: {e}") from e
        except NonRetryableException:
            raise
        except Exception as e:
            raise TransportError(f"{name} failed: {e}") from e

    async def fetch_storage_proof(
        self, address: str, keys: Sequence[SlotKey], block_number: int
    ) -> AccountProof:
        slots = [to_hex(to_bytes32(key)) for key in keys]
        response = await self._call(
            "eth_getProof",
            self.w3.eth.get_proof,
            to_checksum_address(address),
            slots,
            block_number,
        )
        if response is None:
            raise NotFoundError(
                f"No proof for {address} at block {block_number}"
            )
        return AccountProof.from_rpc(response, address=address.lower())

    async def fetch_block_header(self, block_number: int) -> BlockHeader:
        # Raw request: web3's block formatters rename or reject fields the
        # header hash depends on (e.g. long extraData on PoA chains)
        response = await self._call(
            "eth_getBlockByNumber",
            self.w3.provider.make_request,
            RPCEndpoint("eth_getBlockByNumber"),
            [hex(block_number), False],
        )
        if "error" in response:
            raise TransportError(
                f"eth_getBlockByNumber failed: {response['error']}"
            )
        block: Optional[RpcBlockHeader] = response.get("result")
        if block is None:
            raise NotFoundError(f"Block {block_number} not found")
        return BlockHeader.from_rpc(block)

    async def get_current_block_number(self) -> int:
        async def _block_number() -> int:
            return await self.w3.eth.block_number

        return await self._call("eth_blockNumber", _block_number)

    async def get_storage_at(
        self, address: str, slot: SlotKey, block_number: int
    ) -> bytes:
        value = await self._call(
            "eth_getStorageAt",
            self.w3.eth.get_storage_at,
            to_checksum_address(address),
            int.from_bytes(to_bytes32(slot), "big"),
            block_number,
        )
        return to_bytes32(value)

    async def call_balance_of(
        self, token: str, holder: str, block_number: Optional[int] = None
    ) -> int:
        contract = self.w3.eth.contract(
            address=to_checksum_address(token), abi=ERC20_BALANCE_OF_ABI
        )
        call = contract.functions.balanceOf(to_checksum_address(holder))
        block_identifier = "latest" if block_number is None else block_number
        return await self._call(
            "balanceOf", call.call, block_identifier=block_identifier
        )
