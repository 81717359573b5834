from storage_proofs.proofs.generators.block_info import encode_block_header
from storage_proofs.proofs.generators.erc20_proof import find_balance_slot
from storage_proofs.proofs.generators.minime_proof import (
    build_checkpoint_proof,
    find_checkpoint_map_slot,
    verify_checkpoint_proof,
)
from storage_proofs.proofs.hardforks import (
    HARDFORK_CONFIG,
    HardforkConfig,
    HeaderVariant,
)
from storage_proofs.proofs.manager import StorageProofManager
from storage_proofs.proofs.types import (
    AccountProof,
    BlockHeader,
    BlockInfo,
    Checkpoint,
    FullProof,
    StorageProofEntry,
)
from storage_proofs.proofs.verifier import (
    encode_proof_for_submission,
    verify_account_and_storage,
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
    "HardforkConfig",
    "HeaderVariant",
    "AccountProof",
    "BlockHeader",
    "BlockInfo",
    "Checkpoint",
    "FullProof",
    "StorageProofEntry",
]
