"""
MiniMe checkpoint proof generator and verifier.

MiniMe tokens keep, per holder, an array of checkpoints recording the balance
from a given block onwards:

    mapping(address => Checkpoint[]) balances;   // declared at map_index

The array length sits at ``keccak256(pad32(holder) ++ uint256(map_index))``
and checkpoint ``i`` (1-based) at ``uint(keccak256(length_slot)) + i - 1``.
Each checkpoint packs ``balance`` in the high 16 bytes and ``block`` in the
low 16 bytes of its slot.

A historical balance is proven with two consecutive checkpoints: the last one
at or before the claimed block, and the next one (or an empty slot) after it.
"""

from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from storage_proofs.proofs.generators.block_info import build_full_proof
from storage_proofs.proofs.generators.erc20_proof import resolve_block
from storage_proofs.proofs.types import (
    AccountProof,
    Checkpoint,
    FullProof,
    StorageProofEntry,
)
from storage_proofs.proofs.verifier import verify_storage_entry
from storage_proofs.shared.constants import ProofConstants
from storage_proofs.shared.exceptions import (
    NotFoundError,
    ProofIntegrityError,
    ValueMismatchError,
)
from storage_proofs.shared.logging import get_logger
from storage_proofs.shared.services.provider import StateProvider
from storage_proofs.utils.blockchain import (
    get_array_slot,
    get_holder_balance_slot,
    int_to_slot,
    slot_to_int,
    to_bytes32,
)

_logger = get_logger(__name__)

CheckpointEntry = Union[StorageProofEntry, Mapping[str, Any]]


# =============================================================================
# SLOT DERIVATION
# =============================================================================


def unpack_checkpoint(value: Any) -> Checkpoint:
    """Split a packed checkpoint slot into (balance, block)"""
    return Checkpoint.from_value(value)


def get_length_slot(holder: str, map_index: int) -> bytes:
    """Slot holding the length of ``holder``'s checkpoint array"""
    return get_holder_balance_slot(holder, map_index)


def get_checkpoint_base_slot(holder: str, map_index: int) -> int:
    """Slot of the first checkpoint of ``holder``"""
    return slot_to_int(get_array_slot(slot_to_int(get_length_slot(holder, map_index))))


def get_checkpoint_slot(holder: str, map_index: int, position: int) -> bytes:
    """Slot of the checkpoint at 1-based ``position``"""
    if position < 1:
        raise ValueError(f"Checkpoint positions start at 1, got {position}")
    slot = get_checkpoint_base_slot(holder, map_index) + position - 1
    return int_to_slot(slot % 2**256)


# =============================================================================
# STATE READS
# =============================================================================


async def get_array_size(
    provider: StateProvider,
    token: str,
    holder: str,
    map_index: int,
    block_number: int,
) -> int:
    """Number of checkpoints recorded for ``holder``"""
    value = await provider.get_storage_at(
        token, get_length_slot(holder, map_index), block_number
    )
    return slot_to_int(value)


async def get_checkpoint_at_position(
    provider: StateProvider,
    token: str,
    holder: str,
    map_index: int,
    position: int,
    block_number: int,
) -> Checkpoint:
    value = await provider.get_storage_at(
        token, get_checkpoint_slot(holder, map_index, position), block_number
    )
    return unpack_checkpoint(value)


async def find_bracket(
    provider: StateProvider,
    token: str,
    holder: str,
    map_index: int,
    target_block: int,
    block_number: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Locate the pair of checkpoints bracketing ``target_block``.

    Args:
        provider: State provider
        token: MiniMe token address
        holder: Holder address
        map_index: Declaration slot of the checkpoints mapping
        target_block: Block whose balance is being proven
        block_number: Block to read state at (defaults to ``target_block``)

    Returns:
        Tuple[int, int]: 1-based positions (prev, prev + 1). ``prev`` is the
        last checkpoint at or before ``target_block``; when it is the last
        one, ``prev + 1`` points past the end of the array.

    Raises:
        ValueError: ``target_block`` is later than the state block, whose
            state cannot show checkpoints written after it.
        NotFoundError: The holder has no checkpoints, or none at or before
            ``target_block``.
    """
    block = target_block if block_number is None else block_number
    if target_block > block:
        raise ValueError(
            f"Target block {target_block} is after state block {block}"
        )

    async def block_at(position: int) -> int:
        checkpoint = await get_checkpoint_at_position(
            provider, token, holder, map_index, position, block
        )
        return checkpoint.block

    size = await get_array_size(provider, token, holder, map_index, block)
    if size == 0:
        raise NotFoundError(f"{holder} has no checkpoints on {token}")

    if await block_at(size) <= target_block:
        _logger.info(f"Bracket for {holder} at block {target_block}: ({size}, {size + 1})")
        return size, size + 1

    if await block_at(1) > target_block:
        raise NotFoundError(
            f"{holder} has no checkpoint at or before block {target_block}"
        )

    # Invariant: block(low) <= target_block < block(high)
    low, high = 1, size
    while high - low > 1:
        middle = (low + high) // 2
        if await block_at(middle) <= target_block:
            low = middle
        else:
            high = middle

    _logger.info(f"Bracket for {holder} at block {target_block}: ({low}, {high})")
    return low, high


async def find_checkpoint_map_slot(
    provider: StateProvider,
    token: str,
    holder: str,
    max_attempts: int = ProofConstants.MAX_CHECKPOINT_SLOT_ATTEMPTS,
    block_number: Optional[int] = None,
) -> Optional[int]:
    """
    Find the declaration slot of a MiniMe token's checkpoints mapping.

    Probes map indexes 0..max_attempts-1 and returns the first one whose last
    checkpoint for ``holder`` records the holder's current balance.

    Returns:
        Optional[int]: The map index, or None when no candidate matched.

    Raises:
        NotFoundError: The holder's balance is zero.
    """
    block = await resolve_block(provider, block_number)
    balance = await provider.call_balance_of(token, holder, block)
    if balance == 0:
        raise NotFoundError(
            f"{holder} holds no {token} at block {block}, cannot probe slots"
        )

    for map_index in range(max_attempts):
        try:
            size = await get_array_size(provider, token, holder, map_index, block)
            if size == 0:
                continue
            checkpoint = await get_checkpoint_at_position(
                provider, token, holder, map_index, size, block
            )
        except Exception as e:
            _logger.debug(f"Probe of map index {map_index} on {token} failed: {e}")
            continue
        if checkpoint.block == 0:
            continue
        if checkpoint.balance == balance:
            _logger.info(f"Checkpoints mapping of {token} found at slot {map_index}")
            return map_index

    _logger.info(
        f"No checkpoints mapping found for {token} in {max_attempts} attempts"
    )
    return None


# =============================================================================
# PROOF GENERATION
# =============================================================================


async def fetch_checkpoint_proof(
    provider: StateProvider,
    token: str,
    holder: str,
    map_index: int,
    target_block: Optional[int] = None,
    block_number: Optional[int] = None,
) -> AccountProof:
    """
    eth_getProof of the two checkpoints bracketing ``target_block``.

    State is read at ``block_number`` (current block when omitted), which is
    also the default target. The target may not be later than that block.
    """
    block = await resolve_block(provider, block_number)
    target = block if target_block is None else target_block

    prev, curr = await find_bracket(provider, token, holder, map_index, target, block)
    keys = [
        get_checkpoint_slot(holder, map_index, prev),
        get_checkpoint_slot(holder, map_index, curr),
    ]
    return await provider.fetch_storage_proof(token, keys, block)


async def build_checkpoint_proof(
    provider: StateProvider,
    token: str,
    holder: str,
    map_index: int,
    target_block: Optional[int] = None,
    block_number: Optional[int] = None,
) -> Tuple[StorageProofEntry, StorageProofEntry]:
    """The two bracketing storage proofs, in increasing key order"""
    proof = await fetch_checkpoint_proof(
        provider, token, holder, map_index, target_block, block_number
    )
    if len(proof.storage_proofs) != 2:
        raise ProofIntegrityError(
            f"Expected 2 storage proofs, got {len(proof.storage_proofs)}",
            check="checkpoint_structure",
        )
    first, second = sorted(proof.storage_proofs, key=lambda e: e.key_int)
    return first, second


async def fetch_full_checkpoint_proof(
    provider: StateProvider,
    token: str,
    holder: str,
    map_index: int,
    target_block: Optional[int] = None,
    block_number: Optional[int] = None,
    verify: bool = True,
) -> FullProof:
    """
    Checkpoint proof bundled with the block header and submission encodings.

    With ``verify`` the bracket itself is also checked, claiming the balance
    recorded in the first checkpoint at ``target_block``.
    """
    block = await resolve_block(provider, block_number)
    target = block if target_block is None else target_block
    proof = await fetch_checkpoint_proof(
        provider, token, holder, map_index, target, block
    )
    full = await build_full_proof(provider, token, proof, block, verify=verify)

    if verify:
        entries = sorted(proof.storage_proofs, key=lambda e: e.key_int)
        verify_checkpoint_proof(
            holder,
            proof.storage_hash,
            entries,
            map_index,
            unpack_checkpoint(entries[0].value).balance,
            target,
        )
    return full


# =============================================================================
# VERIFICATION
# =============================================================================


def check_checkpoint_keys(key0: Any, key1: Any, holder: str, map_index: int) -> None:
    """
    Structural checks on a bracket's keys.

    Raises:
        ProofIntegrityError: The keys are not consecutive, or the first one
            does not belong to ``holder``'s checkpoint array.
    """
    first = slot_to_int(to_bytes32(key0))
    second = slot_to_int(to_bytes32(key1))
    if second != first + 1:
        raise ProofIntegrityError(
            f"Checkpoint keys are not consecutive: {hex(first)}, {hex(second)}",
            check="checkpoint_keys",
        )

    offset = first - get_checkpoint_base_slot(holder, map_index)
    if not 0 <= offset < ProofConstants.CHECKPOINT_SLOT_WINDOW:
        raise ProofIntegrityError(
            f"Checkpoint key {hex(first)} is outside the checkpoint array "
            f"of {holder} at map index {map_index}",
            check="checkpoint_window",
        )


def _as_entry(entry: CheckpointEntry) -> StorageProofEntry:
    if isinstance(entry, StorageProofEntry):
        return entry
    return StorageProofEntry.from_rpc(entry)


def verify_checkpoint_proof(
    holder: str,
    storage_root: Any,
    entries: Sequence[CheckpointEntry],
    map_index: int,
    claimed_balance: int,
    claimed_block: int,
) -> None:
    """
    Verify that ``holder`` held ``claimed_balance`` at ``claimed_block``.

    Args:
        holder: Holder address
        storage_root: Trusted storage root of the token contract
        entries: The two bracketing storage proofs, lower key first
        map_index: Declaration slot of the checkpoints mapping
        claimed_balance: Balance being proven
        claimed_block: Block the balance is claimed at

    Raises:
        ProofIntegrityError: Malformed bracket or an invalid trie proof.
        ValueMismatchError: The proven checkpoints disagree with the claim.
    """
    if len(entries) != 2:
        raise ProofIntegrityError(
            f"Expected 2 storage proofs, got {len(entries)}",
            check="checkpoint_structure",
        )
    first, second = (_as_entry(entry) for entry in entries)
    if first.value == 0:
        raise ProofIntegrityError(
            "First checkpoint is empty", check="checkpoint_structure", index=0
        )
    check_checkpoint_keys(first.key, second.key, holder, map_index)

    checkpoint = unpack_checkpoint(first.value)
    if checkpoint.balance != claimed_balance:
        raise ValueMismatchError(
            f"Checkpoint balance {checkpoint.balance} differs from the "
            f"claimed {claimed_balance}",
            check="checkpoint_balance",
            index=0,
        )
    if checkpoint.block > claimed_block:
        raise ValueMismatchError(
            f"Checkpoint starts at block {checkpoint.block}, after the "
            f"claimed block {claimed_block}",
            check="checkpoint_block",
            index=0,
        )

    if second.value != 0:
        following = unpack_checkpoint(second.value)
        if checkpoint.block >= following.block:
            raise ProofIntegrityError(
                f"Checkpoint blocks are not increasing: {checkpoint.block}, "
                f"{following.block}",
                check="checkpoint_order",
                index=1,
            )
        if claimed_block >= following.block:
            raise ValueMismatchError(
                f"A later checkpoint at block {following.block} supersedes "
                f"the claimed block {claimed_block}",
                check="checkpoint_block",
                index=1,
            )

    for index, entry in enumerate((first, second)):
        verify_storage_entry(storage_root, entry, index=index)
