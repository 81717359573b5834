"""ERC20 balance proof generator"""

from typing import Optional

from storage_proofs.proofs.generators.block_info import build_full_proof
from storage_proofs.proofs.types import AccountProof, FullProof
from storage_proofs.shared.constants import ProofConstants
from storage_proofs.shared.exceptions import NotFoundError
from storage_proofs.shared.logging import get_logger
from storage_proofs.shared.services.provider import StateProvider
from storage_proofs.utils.blockchain import get_holder_balance_slot, slot_to_int

_logger = get_logger(__name__)


async def resolve_block(
    provider: StateProvider, block_number: Optional[int]
) -> int:
    """Pin "latest" to a concrete block so every later read sees the same state"""
    if block_number is None:
        return await provider.get_current_block_number()
    return block_number


async def find_balance_slot(
    provider: StateProvider,
    token: str,
    holder: str,
    max_attempts: int = ProofConstants.MAX_BALANCE_SLOT_ATTEMPTS,
    block_number: Optional[int] = None,
) -> Optional[int]:
    """
    Find the declaration slot of a token's ``balances`` mapping.

    Probes mapping slots 0..max_attempts-1 and returns the first one whose
    ``balances[holder]`` storage equals ``balanceOf(holder)``.

    Args:
        provider: State provider
        token: Token contract address
        holder: An address holding a non-zero balance
        max_attempts: Number of candidate slots to probe
        block_number: Block to read at (defaults to the current block)

    Returns:
        Optional[int]: The mapping slot, or None when no candidate matched.

    Raises:
        NotFoundError: The holder's balance is zero, so no slot can be told
            apart from an empty one.
    """
    block = await resolve_block(provider, block_number)
    balance = await provider.call_balance_of(token, holder, block)
    if balance == 0:
        raise NotFoundError(
            f"{holder} holds no {token} at block {block}, cannot probe slots"
        )

    for mapping_slot in range(max_attempts):
        storage_slot = get_holder_balance_slot(holder, mapping_slot)
        try:
            value = await provider.get_storage_at(token, storage_slot, block)
        except Exception as e:
            _logger.debug(f"Probe of slot {mapping_slot} on {token} failed: {e}")
            continue
        if slot_to_int(value) == balance:
            _logger.info(f"Balance mapping of {token} found at slot {mapping_slot}")
            return mapping_slot

    _logger.info(
        f"No balance mapping found for {token} in {max_attempts} attempts"
    )
    return None


async def fetch_balance_proof(
    provider: StateProvider,
    token: str,
    holder: str,
    mapping_slot: int,
    block_number: Optional[int] = None,
) -> AccountProof:
    """eth_getProof of ``balances[holder]`` on ``token``"""
    block = await resolve_block(provider, block_number)
    storage_slot = get_holder_balance_slot(holder, mapping_slot)
    return await provider.fetch_storage_proof(token, [storage_slot], block)


async def fetch_full_balance_proof(
    provider: StateProvider,
    token: str,
    holder: str,
    mapping_slot: int,
    block_number: Optional[int] = None,
    verify: bool = True,
) -> FullProof:
    """
    Balance proof bundled with the block header and submission encodings.

    Returns:
        FullProof: Proof, header, header RLP, account-proof RLP and the
        storage-proof RLP of ``balances[holder]``.
    """
    block = await resolve_block(provider, block_number)
    proof = await fetch_balance_proof(provider, token, holder, mapping_slot, block)
    return await build_full_proof(provider, token, proof, block, verify=verify)
