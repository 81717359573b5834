"""
Unit tests for MiniMe checkpoint proofs.

Verification tests run against recorded mainnet proofs; bracket search and
slot discovery run against the in-memory provider.
"""

import pytest

from storage_proofs.proofs.generators.minime_proof import (
    build_checkpoint_proof,
    check_checkpoint_keys,
    find_bracket,
    find_checkpoint_map_slot,
    get_checkpoint_base_slot,
    get_checkpoint_slot,
    get_length_slot,
    unpack_checkpoint,
    verify_checkpoint_proof,
)
from storage_proofs.proofs.types import Checkpoint, StorageProofEntry
from storage_proofs.shared.exceptions import (
    NotFoundError,
    ProofIntegrityError,
    ValueMismatchError,
)
from storage_proofs.utils.blockchain import int_to_slot, slot_to_int, to_bytes32

HOLDER = "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"
MAP_INDEX = 8


def _load(case):
    return (
        case["address"],
        case["root"],
        [StorageProofEntry.from_rpc(item) for item in case["storageProof"]],
        int(case["balance"], 16),
        case["block"],
        case["slot"],
    )


def _with_entry(entries, index, **changes):
    entry = entries[index]
    fields = {"key": entry.key, "value": entry.value, "proof_nodes": entry.proof_nodes}
    fields.update(changes)
    updated = list(entries)
    updated[index] = StorageProofEntry(**fields)
    return updated


def _set_checkpoints(provider, token, holder, map_index, checkpoints):
    provider.set_storage(
        token, get_length_slot(holder, map_index), len(checkpoints)
    )
    for position, (balance, block) in enumerate(checkpoints, start=1):
        provider.set_storage(
            token,
            get_checkpoint_slot(holder, map_index, position),
            slot_to_int(Checkpoint(balance, block).pack()),
        )


class TestCheckpointPacking:
    def test_unpack(self):
        checkpoint = unpack_checkpoint(
            "0x00000000000293fb5ca8d27b5662e57700000000000000000000000000c304f2"
        )
        assert checkpoint.balance == 3116676321791472042173815
        assert checkpoint.block == 12780786

    def test_unpack_all_ones(self):
        checkpoint = unpack_checkpoint("0x" + "ff" * 32)
        assert checkpoint == Checkpoint(2**128 - 1, 2**128 - 1)

    def test_unpack_zero(self):
        assert unpack_checkpoint(0) == Checkpoint(0, 0)

    def test_pack_round_trip(self):
        checkpoint = Checkpoint(balance=10**24, block=17_000_000)
        assert unpack_checkpoint(checkpoint.pack()) == checkpoint

    def test_pack_overflow(self):
        with pytest.raises(ValueError):
            Checkpoint(balance=2**128, block=1).pack()


class TestSlotDerivation:
    def test_positions_are_consecutive(self):
        base = get_checkpoint_base_slot(HOLDER, MAP_INDEX)
        assert slot_to_int(get_checkpoint_slot(HOLDER, MAP_INDEX, 1)) == base
        assert slot_to_int(get_checkpoint_slot(HOLDER, MAP_INDEX, 5)) == base + 4

    def test_position_zero(self):
        with pytest.raises(ValueError):
            get_checkpoint_slot(HOLDER, MAP_INDEX, 0)

    @pytest.mark.parametrize(
        "case, offset",
        [
            ("holder_with_empty_branch_terminal", 0),
            ("holder_with_leaf_terminal", 1752),
        ],
    )
    def test_recorded_key_offsets(self, minime_proofs, case, offset):
        holder, _, entries, _, _, map_index = _load(minime_proofs[case])
        base = get_checkpoint_base_slot(holder, map_index)

        assert entries[0].key_int - base == offset
        assert entries[1].key_int == entries[0].key_int + 1


class TestVerifyRecordedProofs:
    """Recorded proofs of the two terminal shapes."""

    @pytest.mark.parametrize(
        "case", ["holder_with_empty_branch_terminal", "holder_with_leaf_terminal"]
    )
    def test_valid(self, minime_proofs, case):
        holder, root, entries, balance, block, map_index = _load(minime_proofs[case])
        verify_checkpoint_proof(holder, root, entries, map_index, balance, block)

    def test_accepts_rpc_dicts(self, minime_proofs):
        case = minime_proofs["holder_with_empty_branch_terminal"]
        verify_checkpoint_proof(
            case["address"],
            case["root"],
            case["storageProof"],
            case["slot"],
            int(case["balance"], 16),
            case["block"],
        )

    def test_first_checkpoint_block(self, minime_proofs):
        _, _, entries, _, _, _ = _load(
            minime_proofs["holder_with_empty_branch_terminal"]
        )
        assert unpack_checkpoint(entries[0].value).block == 4325157

        _, _, entries, _, block, _ = _load(minime_proofs["holder_with_leaf_terminal"])
        assert unpack_checkpoint(entries[0].value).block == block == 12743076

    def test_wrong_balance(self, minime_proofs):
        holder, root, entries, balance, block, map_index = _load(
            minime_proofs["holder_with_empty_branch_terminal"]
        )
        with pytest.raises(ValueMismatchError) as excinfo:
            verify_checkpoint_proof(
                holder, root, entries, map_index, balance - 1_000_000, block
            )
        assert excinfo.value.check == "checkpoint_balance"

    def test_wrong_root(self, minime_proofs):
        holder, root, entries, balance, block, map_index = _load(
            minime_proofs["holder_with_empty_branch_terminal"]
        )
        reversed_root = to_bytes32(root)[::-1]

        with pytest.raises(ProofIntegrityError):
            verify_checkpoint_proof(
                holder, reversed_root, entries, map_index, balance, block
            )

    def test_corrupted_node(self, minime_proofs):
        holder, root, entries, balance, block, map_index = _load(
            minime_proofs["holder_with_empty_branch_terminal"]
        )
        nodes = list(entries[0].proof_nodes)
        nodes[3] = nodes[3][:10] + bytes([nodes[3][10] ^ 0xFF]) + nodes[3][11:]
        entries = _with_entry(entries, 0, proof_nodes=tuple(nodes))

        with pytest.raises(ProofIntegrityError) as excinfo:
            verify_checkpoint_proof(holder, root, entries, map_index, balance, block)
        assert excinfo.value.index == 0

    def test_claim_before_first_checkpoint(self, minime_proofs):
        holder, root, entries, balance, _, map_index = _load(
            minime_proofs["holder_with_leaf_terminal"]
        )
        with pytest.raises(ValueMismatchError) as excinfo:
            verify_checkpoint_proof(
                holder, root, entries, map_index, balance, 12743076 - 1
            )
        assert excinfo.value.check == "checkpoint_block"

    def test_wrong_holder(self, minime_proofs):
        _, root, entries, balance, block, map_index = _load(
            minime_proofs["holder_with_empty_branch_terminal"]
        )
        with pytest.raises(ProofIntegrityError) as excinfo:
            verify_checkpoint_proof(HOLDER, root, entries, map_index, balance, block)
        assert excinfo.value.check == "checkpoint_window"

    def test_wrong_map_index(self, minime_proofs):
        holder, root, entries, balance, block, _ = _load(
            minime_proofs["holder_with_empty_branch_terminal"]
        )
        with pytest.raises(ProofIntegrityError):
            verify_checkpoint_proof(holder, root, entries, 9, balance, block)

    def test_wrong_entry_count(self, minime_proofs):
        holder, root, entries, balance, block, map_index = _load(
            minime_proofs["holder_with_empty_branch_terminal"]
        )
        with pytest.raises(ProofIntegrityError) as excinfo:
            verify_checkpoint_proof(
                holder, root, entries[:1], map_index, balance, block
            )
        assert excinfo.value.check == "checkpoint_structure"

    def test_empty_first_entry(self, minime_proofs):
        holder, root, entries, _, block, map_index = _load(
            minime_proofs["holder_with_empty_branch_terminal"]
        )
        entries = _with_entry(entries, 0, value=0)

        with pytest.raises(ProofIntegrityError) as excinfo:
            verify_checkpoint_proof(holder, root, entries, map_index, 0, block)
        assert excinfo.value.check == "checkpoint_structure"


class TestBracketOrdering:
    """Claims checked against the second checkpoint of the bracket."""

    def _entries(self, first, second):
        key = get_checkpoint_slot(HOLDER, MAP_INDEX, 1)
        next_key = get_checkpoint_slot(HOLDER, MAP_INDEX, 2)
        return [
            StorageProofEntry(key=key, value=slot_to_int(first.pack())),
            StorageProofEntry(key=next_key, value=slot_to_int(second.pack())),
        ]

    def test_superseded_claim(self):
        entries = self._entries(Checkpoint(10, 100), Checkpoint(20, 200))
        with pytest.raises(ValueMismatchError) as excinfo:
            verify_checkpoint_proof(HOLDER, b"\x00" * 32, entries, MAP_INDEX, 10, 200)
        assert excinfo.value.index == 1

    def test_blocks_not_increasing(self):
        entries = self._entries(Checkpoint(10, 200), Checkpoint(20, 200))
        with pytest.raises(ProofIntegrityError) as excinfo:
            verify_checkpoint_proof(HOLDER, b"\x00" * 32, entries, MAP_INDEX, 10, 200)
        assert excinfo.value.check == "checkpoint_order"


class TestCheckpointKeys:
    def test_window_bounds(self):
        base = get_checkpoint_base_slot(HOLDER, MAP_INDEX)

        check_checkpoint_keys(base, base + 1, HOLDER, MAP_INDEX)
        check_checkpoint_keys(base + 65535, base + 65536, HOLDER, MAP_INDEX)

        for first in (base + 65536, base - 1):
            with pytest.raises(ProofIntegrityError) as excinfo:
                check_checkpoint_keys(first, first + 1, HOLDER, MAP_INDEX)
            assert excinfo.value.check == "checkpoint_window"

    def test_not_consecutive(self):
        base = get_checkpoint_base_slot(HOLDER, MAP_INDEX)
        with pytest.raises(ProofIntegrityError) as excinfo:
            check_checkpoint_keys(base, base + 2, HOLDER, MAP_INDEX)
        assert excinfo.value.check == "checkpoint_keys"

    def test_hex_keys(self):
        base = get_checkpoint_base_slot(HOLDER, MAP_INDEX)
        check_checkpoint_keys(
            "0x" + int_to_slot(base).hex(),
            "0x" + int_to_slot(base + 1).hex(),
            HOLDER,
            MAP_INDEX,
        )


class TestFindBracket:
    """Binary search over the checkpoint array."""

    BLOCKS = [100, 200, 300, 400, 500]

    @pytest.fixture
    def token_with_checkpoints(self, provider, token_address):
        _set_checkpoints(
            provider,
            token_address,
            HOLDER,
            MAP_INDEX,
            [(1000 * (i + 1), block) for i, block in enumerate(self.BLOCKS)],
        )
        return token_address

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "target, expected",
        [
            (250, (2, 3)),
            (100, (1, 2)),
            (499, (4, 5)),
            (500, (5, 6)),
            (1000, (5, 6)),
        ],
    )
    async def test_bracket(self, provider, token_with_checkpoints, target, expected):
        bracket = await find_bracket(
            provider, token_with_checkpoints, HOLDER, MAP_INDEX, target
        )
        assert bracket == expected

    @pytest.mark.asyncio
    async def test_target_before_first_checkpoint(
        self, provider, token_with_checkpoints
    ):
        with pytest.raises(NotFoundError):
            await find_bracket(provider, token_with_checkpoints, HOLDER, MAP_INDEX, 50)

    @pytest.mark.asyncio
    async def test_no_checkpoints(self, provider, token_address):
        with pytest.raises(NotFoundError):
            await find_bracket(provider, token_address, HOLDER, MAP_INDEX, 250)

    @pytest.mark.asyncio
    async def test_reads_at_state_block(self, provider, token_with_checkpoints):
        await find_bracket(
            provider,
            token_with_checkpoints,
            HOLDER,
            MAP_INDEX,
            250,
            block_number=20_000_000,
        )
        assert {read[2] for read in provider.storage_reads} == {20_000_000}

    @pytest.mark.asyncio
    async def test_target_after_state_block(self, provider, token_with_checkpoints):
        with pytest.raises(ValueError, match="after state block"):
            await find_bracket(
                provider,
                token_with_checkpoints,
                HOLDER,
                MAP_INDEX,
                10**9,
                block_number=550,
            )
        assert provider.storage_reads == []

    @pytest.mark.asyncio
    async def test_build_rejects_target_after_state_block(
        self, provider, token_with_checkpoints
    ):
        with pytest.raises(ValueError):
            await build_checkpoint_proof(
                provider,
                token_with_checkpoints,
                HOLDER,
                MAP_INDEX,
                target_block=10**9,
                block_number=550,
            )
        assert provider.proof_requests == []

    @pytest.mark.asyncio
    async def test_build_checkpoint_proof(self, provider, token_with_checkpoints):
        first, second = await build_checkpoint_proof(
            provider, token_with_checkpoints, HOLDER, MAP_INDEX, target_block=250
        )

        assert second.key_int == first.key_int + 1
        assert unpack_checkpoint(first.value) == Checkpoint(2000, 200)
        assert unpack_checkpoint(second.value) == Checkpoint(3000, 300)
        _, requested, block = provider.proof_requests[0]
        assert block == provider.block_number
        assert len(requested) == 2

    @pytest.mark.asyncio
    async def test_build_past_last_checkpoint(self, provider, token_with_checkpoints):
        first, second = await build_checkpoint_proof(
            provider, token_with_checkpoints, HOLDER, MAP_INDEX
        )
        assert unpack_checkpoint(first.value) == Checkpoint(5000, 500)
        assert second.value == 0


class TestFindCheckpointMapSlot:
    """Discovery of the checkpoints mapping slot."""

    @pytest.mark.asyncio
    async def test_found(self, provider, token_address):
        provider.set_balance(token_address, HOLDER, 7000)
        _set_checkpoints(
            provider, token_address, HOLDER, 3, [(5000, 100), (7000, 200)]
        )

        assert await find_checkpoint_map_slot(provider, token_address, HOLDER) == 3

    @pytest.mark.asyncio
    async def test_balance_mismatch_is_skipped(self, provider, token_address):
        provider.set_balance(token_address, HOLDER, 7000)
        _set_checkpoints(provider, token_address, HOLDER, 1, [(6999, 100)])
        _set_checkpoints(provider, token_address, HOLDER, 4, [(7000, 100)])

        assert await find_checkpoint_map_slot(provider, token_address, HOLDER) == 4

    @pytest.mark.asyncio
    async def test_not_found(self, provider, token_address):
        provider.set_balance(token_address, HOLDER, 7000)

        assert await find_checkpoint_map_slot(provider, token_address, HOLDER) is None
        assert len(provider.storage_reads) == 20

    @pytest.mark.asyncio
    async def test_zero_balance(self, provider, token_address):
        with pytest.raises(NotFoundError):
            await find_checkpoint_map_slot(provider, token_address, HOLDER)

    @pytest.mark.asyncio
    async def test_failing_probe_is_skipped(self, provider, token_address):
        provider.set_balance(token_address, HOLDER, 7000)
        _set_checkpoints(provider, token_address, HOLDER, 2, [(7000, 100)])
        provider.failing_slots.add(slot_to_int(get_length_slot(HOLDER, 0)))

        assert await find_checkpoint_map_slot(provider, token_address, HOLDER) == 2
