"""Block header encoder"""

from typing import Any, List, Mapping, Optional, Tuple, Union

from eth_utils import keccak

from storage_proofs.proofs.hardforks import (
    HARDFORK_CONFIG,
    HardforkConfig,
    HeaderVariant,
)
from storage_proofs.proofs.types import (
    AccountProof,
    BlockHeader,
    BlockInfo,
    FullProof,
)
from storage_proofs.proofs.verifier import (
    encode_proof_for_submission,
    verify_account_and_storage,
)
from storage_proofs.shared.exceptions import (
    DecodeError,
    HeaderHashMismatchError,
)
from storage_proofs.shared.logging import get_logger
from storage_proofs.shared.services.provider import StateProvider
from storage_proofs.utils import rlp_codec
from storage_proofs.utils.blockchain import to_hex

_logger = get_logger(__name__)


def resolve_field_set(
    chain_name: str,
    block_number: int,
    hardfork_config: HardforkConfig = HARDFORK_CONFIG,
    timestamp: Optional[int] = None,
) -> HeaderVariant:
    """Header variant in force on ``chain_name`` at ``block_number`` (and ``timestamp``)"""
    return hardfork_config.resolve(chain_name, block_number, timestamp)


def encode_header(header: BlockHeader, variant: HeaderVariant) -> bytes:
    """RLP-encode the ordered field list of ``variant`` -> RLP encoded"""
    items: List[Union[int, bytes]] = []
    for name in variant.fields:
        value = header.get(name)
        if value is None:
            raise DecodeError(
                f"Block {header.number} lacks {name}, required by the "
                f"{variant.label} header"
            )
        # Quantities are ints (minimal encoding), everything else raw bytes
        items.append(value)
    return rlp_codec.encode(items)


def compute_hash(encoded_header: bytes) -> bytes:
    return keccak(encoded_header)


def encode_block_header(
    header: Union[BlockHeader, Mapping[str, Any]],
    hardfork_config: HardforkConfig = HARDFORK_CONFIG,
    chain_name: str = "mainnet",
) -> Tuple[bytes, bytes]:
    """
    Rebuild the canonical header RLP and check it against the reported hash.

    Args:
        header: Parsed header, or a raw eth_getBlockByNumber result
        hardfork_config: Activation table used to pick the field set
        chain_name: Chain the block belongs to

    Returns:
        (header RLP, header hash)

    Raises:
        HeaderHashMismatchError: The rebuilt header does not hash to the
            reported block hash (forged fields or wrong variant).
    """
    if not isinstance(header, BlockHeader):
        header = BlockHeader.from_rpc(header)

    variant = resolve_field_set(
        chain_name, header.number, hardfork_config, header.timestamp
    )
    encoded = encode_header(header, variant)
    block_hash = compute_hash(encoded)
    if block_hash != header.hash:
        raise HeaderHashMismatchError(to_hex(block_hash), to_hex(header.hash))
    return encoded, block_hash


async def get_block_info(
    provider: StateProvider, block_number: int
) -> BlockInfo:
    """Get block info -> block number, block hash, block timestamp, rlp encoded block header"""
    header = await provider.fetch_block_header(block_number)
    encoded_header, block_hash = encode_block_header(
        header, chain_name=provider.chain_name
    )
    _logger.debug(f"Encoded header of block {header.number}")

    return {
        "block_number": header.number,
        "block_hash": to_hex(block_hash),
        "block_timestamp": header.timestamp,
        "rlp_block_header": to_hex(encoded_header),
    }


async def build_full_proof(
    provider: StateProvider,
    address: str,
    proof: AccountProof,
    block_number: int,
    verify: bool = True,
) -> FullProof:
    """
    Bundle a fetched proof with its block header and submission encodings.

    With ``verify`` the proof is first checked against the state root of
    the (hash-checked) header, so a dishonest provider is caught here rather
    than on-chain.
    """
    header = await provider.fetch_block_header(block_number)
    header_rlp, _ = encode_block_header(header, chain_name=provider.chain_name)
    if verify:
        verify_account_and_storage(header.state_root, address, proof)

    return FullProof(
        proof=proof,
        header=header,
        block_header_rlp=header_rlp,
        account_proof_rlp=encode_proof_for_submission(proof.account_proof_nodes),
        storage_proofs_rlp=tuple(
            encode_proof_for_submission(entry.proof_nodes)
            for entry in proof.storage_proofs
        ),
    )
