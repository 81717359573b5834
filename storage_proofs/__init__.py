"""storage-proofs - verify and build Ethereum account and storage proofs."""

__version__ = "0.1.0"

from .proofs import (
    HARDFORK_CONFIG,
    AccountProof,
    BlockHeader,
    Checkpoint,
    FullProof,
    StorageProofEntry,
    StorageProofManager,
    build_checkpoint_proof,
    encode_block_header,
    encode_proof_for_submission,
    find_balance_slot,
    find_checkpoint_map_slot,
    verify_account_and_storage,
    verify_checkpoint_proof,
)
from .shared.exceptions import (
    ConfigurationException,
    DecodeError,
    HeaderHashMismatchError,
    NonRetryableException,
    NotFoundError,
    ProofIntegrityError,
    RetryableException,
    SlotNotFoundError,
    StorageProofsError,
    TransportError,
    ValueMismatchError,
    VerificationError,
)

__all__ = [
    "StorageProofManager",
    "verify_account_and_storage",
    "encode_proof_for_submission",
    "encode_block_header",
    "find_balance_slot",
    "find_checkpoint_map_slot",
    "build_checkpoint_proof",
    "verify_checkpoint_proof",
    "HARDFORK_CONFIG",
    "AccountProof",
    "BlockHeader",
    "Checkpoint",
    "FullProof",
    "StorageProofEntry",
    "RetryableException",
    "NonRetryableException",
    "ConfigurationException",
    "TransportError",
    "NotFoundError",
    "SlotNotFoundError",
    "DecodeError",
    "VerificationError",
    "ProofIntegrityError",
    "StorageProofsError",
    "ValueMismatchError",
    "HeaderHashMismatchError",
]
