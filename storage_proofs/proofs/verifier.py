"""
Account and storage proof verification.

Checks an eth_getProof bundle against a trusted state root: the account
leaf must sit under keccak256(address) in the state trie and must equal the
RLP of the claimed account fields, and each storage slot must sit under
keccak256(key) in the account's storage trie.
"""

from typing import Any, Dict, Optional, Sequence

from storage_proofs.proofs.trie import verify_proof
from storage_proofs.proofs.types import AccountProof, StorageProofEntry
from storage_proofs.shared.exceptions import (
    ProofIntegrityError,
    StorageProofsError,
    ValueMismatchError,
    VerificationError,
)
from storage_proofs.utils import rlp_codec
from storage_proofs.utils.blockchain import (
    encode_rlp_proof,
    secure_key_nibbles,
    to_bytes,
    to_bytes32,
    to_hex,
)


def encode_account_rlp(
    nonce: int, balance: int, storage_hash: bytes, code_hash: bytes
) -> bytes:
    """RLP of the state-trie account leaf (balance 0 is the empty string)"""
    return rlp_codec.encode(
        [nonce, balance, to_bytes32(storage_hash), to_bytes32(code_hash)]
    )


def verify_account(state_root: Any, address: str, proof: AccountProof) -> None:
    """
    Verify the account part of a proof against a state root.

    Raises:
        ProofIntegrityError: The trie walk failed, the account is absent, or
            the proven leaf differs from the claimed account fields.
    """
    path = secure_key_nibbles(to_bytes(address))
    leaf = verify_proof(to_bytes32(state_root), path, proof.account_proof_nodes)
    if leaf is None:
        raise ProofIntegrityError(
            f"account proof invalid: {address} is absent from the state trie",
            check="account",
        )
    expected = encode_account_rlp(
        proof.nonce, proof.balance, proof.storage_hash, proof.code_hash
    )
    if leaf != expected:
        raise ProofIntegrityError(
            f"account proof invalid: proven leaf {to_hex(leaf)} does not "
            f"match the claimed account fields",
            check="account",
        )


def verify_storage_slot(
    storage_root: Any,
    key: Any,
    proof_nodes: Sequence[bytes],
    claimed_value: int,
    index: Optional[int] = None,
) -> None:
    """
    Verify one storage slot against an account's storage root.

    A proof of absence is accepted only for a claimed value of zero.

    Raises:
        ProofIntegrityError: The trie walk failed.
        ValueMismatchError: The proven value differs from ``claimed_value``.
    """
    slot = to_bytes32(key)
    try:
        value = verify_proof(
            to_bytes32(storage_root), secure_key_nibbles(slot), proof_nodes
        )
    except ProofIntegrityError as e:
        raise ProofIntegrityError(e.detail, check="storage", index=index) from e

    if value is None:
        if claimed_value != 0:
            raise ValueMismatchError(
                f"slot {to_hex(slot)} is absent but {claimed_value} was claimed",
                check="storage_value",
                index=index,
            )
        return

    expected = rlp_codec.encode(rlp_codec.int_to_bytes(claimed_value))
    if value != expected:
        raise ValueMismatchError(
            f"slot {to_hex(slot)} holds {to_hex(value)}, "
            f"expected {to_hex(expected)}",
            check="storage_value",
            index=index,
        )


def verify_storage_entry(
    storage_root: Any, entry: StorageProofEntry, index: Optional[int] = None
) -> None:
    verify_storage_slot(
        storage_root, entry.key, entry.proof_nodes, entry.value, index=index
    )


def verify_account_and_storage(
    state_root: Any, address: str, proof: AccountProof
) -> None:
    """
    Verify a full eth_getProof bundle.

    The account is checked first and any failure there propagates as is.
    Every storage entry is then checked independently against the proven
    storage root.

    Raises:
        ProofIntegrityError: The account proof is invalid.
        StorageProofsError: One or more storage entries failed; ``failures``
            maps each failing index to its error.
    """
    verify_account(state_root, address, proof)

    failures: Dict[int, Exception] = {}
    for index, entry in enumerate(proof.storage_proofs):
        try:
            verify_storage_entry(proof.storage_hash, entry, index=index)
        except VerificationError as e:
            failures[index] = e
    if failures:
        raise StorageProofsError(failures)


def encode_proof_for_submission(proof_nodes: Sequence[Any]) -> bytes:
    """RLP list of decoded proof nodes, the form expected by on-chain verifiers"""
    return encode_rlp_proof(proof_nodes)
