import asyncio
from typing import Dict, Optional, Sequence

from eth_utils import to_checksum_address

from storage_proofs.proofs.generators.block_info import get_block_info
from storage_proofs.proofs.generators.erc20_proof import (
    fetch_full_balance_proof,
    find_balance_slot,
    resolve_block,
)
from storage_proofs.proofs.generators.minime_proof import (
    fetch_full_checkpoint_proof,
    find_checkpoint_map_slot,
)
from storage_proofs.proofs.types import BlockInfo, FullProof
from storage_proofs.shared.exceptions import SlotNotFoundError
from storage_proofs.shared.logging import get_logger
from storage_proofs.shared.results import Result
from storage_proofs.shared.services.provider import StateProvider
from storage_proofs.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)


class StorageProofManager:
    """A global class for generating and checking storage proofs"""

    def __init__(self, provider: StateProvider):
        self.provider = provider

    @classmethod
    def for_chain(cls, chain_id: int) -> "StorageProofManager":
        """Manager backed by the cached Web3Service of ``chain_id``"""
        return cls(Web3Service.get_instance(chain_id))

    async def get_block_info(self, block_number: int) -> Result[BlockInfo]:
        """
        Get block info for a given block number.

        The header is rebuilt and checked against the reported hash before
        being returned.

        Returns:
            Result[BlockInfo]: Success with block info, or failure with error
        """
        try:
            block_info = await get_block_info(self.provider, block_number)
            return Result.ok(block_info)
        except Exception as e:
            return Result.from_exception(
                "block_info", "getting block info", e, {"block_number": block_number}
            )

    async def get_balance_proof(
        self,
        token: str,
        holder: str,
        mapping_slot: Optional[int] = None,
        block_number: Optional[int] = None,
        verify: bool = True,
    ) -> Result[FullProof]:
        """
        Generate a balance proof for a plain ERC20 token.

        Args:
            token: Token address
            holder: Holder address
            mapping_slot: Slot of the balances mapping (discovered when None)
            block_number: Block to prove at (current block when None)
            verify: Check the proof locally before returning it

        Returns:
            Result[FullProof]: Success with the proof bundle, or failure with error
        """
        context = {"token": token, "holder": holder, "block": block_number}

        try:
            block = await resolve_block(self.provider, block_number)
            context["block"] = block
            if mapping_slot is None:
                mapping_slot = await find_balance_slot(
                    self.provider, token, holder, block_number=block
                )
                if mapping_slot is None:
                    raise SlotNotFoundError(
                        f"Could not find the balance mapping of {token}"
                    )
            context["slot"] = mapping_slot

            proof = await fetch_full_balance_proof(
                self.provider, token, holder, mapping_slot, block, verify=verify
            )
            return Result.ok(proof)
        except Exception as e:
            return Result.from_exception(
                "balance_proof", "generating balance proof", e, context
            )

    async def get_checkpoint_proof(
        self,
        token: str,
        holder: str,
        map_index: Optional[int] = None,
        target_block: Optional[int] = None,
        block_number: Optional[int] = None,
        verify: bool = True,
    ) -> Result[FullProof]:
        """
        Generate a historical balance proof for a MiniMe token.

        Args:
            token: MiniMe token address
            holder: Holder address
            map_index: Slot of the checkpoints mapping (discovered when None)
            target_block: Block whose balance is proven (defaults to block_number)
            block_number: Block whose state the proof is taken from
            verify: Check the proof locally before returning it

        Returns:
            Result[FullProof]: Success with the proof bundle, or failure with error
        """
        context = {
            "token": token,
            "holder": holder,
            "target_block": target_block,
            "block": block_number,
        }

        try:
            block = await resolve_block(self.provider, block_number)
            context["block"] = block
            if map_index is None:
                map_index = await find_checkpoint_map_slot(
                    self.provider, token, holder, block_number=block
                )
                if map_index is None:
                    raise SlotNotFoundError(
                        f"Could not find the checkpoints mapping of {token}"
                    )
            context["map_index"] = map_index

            proof = await fetch_full_checkpoint_proof(
                self.provider,
                token,
                holder,
                map_index,
                target_block=target_block,
                block_number=block,
                verify=verify,
            )
            return Result.ok(proof)
        except Exception as e:
            return Result.from_exception(
                "checkpoint_proof", "generating checkpoint proof", e, context
            )

    async def find_balance_slots(
        self,
        token: str,
        holders: Sequence[str],
        minime: bool = False,
        block_number: Optional[int] = None,
    ) -> Result[Dict[str, Optional[int]]]:
        """
        Run slot discovery for several holders concurrently.

        Every probe reads at the same block. A holder whose discovery raised
        maps to None and adds a warning to the result.

        Returns:
            Result[Dict[str, Optional[int]]]: holder -> slot (or None)
        """
        try:
            block = await resolve_block(self.provider, block_number)
        except Exception as e:
            return Result.from_exception(
                "slot_discovery", "resolving block", e, {"token": token}
            )

        finder = find_checkpoint_map_slot if minime else find_balance_slot
        outcomes = await asyncio.gather(
            *(
                finder(self.provider, token, holder, block_number=block)
                for holder in holders
            ),
            return_exceptions=True,
        )

        slots: Dict[str, Optional[int]] = {}
        result: Result[Dict[str, Optional[int]]] = Result.ok(slots)
        for holder, outcome in zip(holders, outcomes):
            key = to_checksum_address(holder)
            if isinstance(outcome, Exception):
                slots[key] = None
                result.add_warning(
                    source="slot_discovery",
                    message=f"Slot discovery failed for {key}: {outcome}",
                    context={"token": token, "holder": key, "block": block},
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                slots[key] = outcome

        _logger.info(
            f"Slot discovery on {token}: "
            f"{sum(s is not None for s in slots.values())}/{len(slots)} found"
        )
        return result
