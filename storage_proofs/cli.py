#!/usr/bin/env python3
"""
Unified CLI for storage-proofs.

Examples:
  - Block headers
    storage-proofs block-header --block-number 18500000

  - Slot discovery
    storage-proofs find-slot --token 0x... --holder 0x... [--holder 0x...] [--minime]

  - Proofs
    storage-proofs balance-proof --token 0x... --holder 0x... [--slot 2] [--block-number 18500000]
    storage-proofs checkpoint-proof --token 0x... --holder 0x... [--map-index 8] [--target-block 18400000]

  - Offline verification of a saved eth_getProof response
    storage-proofs verify --proof-file proof.json --state-root 0x... --address 0x...
"""

import argparse
import asyncio
from typing import List, Optional

from storage_proofs.commands.validation import (
    validate_block_number,
    validate_chain_id,
    validate_eth_address,
    validate_hash,
)
from storage_proofs.proofs import StorageProofManager
from storage_proofs.proofs.types import AccountProof
from storage_proofs.proofs.verifier import verify_account_and_storage
from storage_proofs.shared.logging import set_log_level
from storage_proofs.utils.file_utils import load_json
from storage_proofs.utils.formatters import (
    console,
    create_proof_table,
    create_slots_table,
    format_address,
    save_json_output,
)


def _optional_block(args: argparse.Namespace) -> Optional[int]:
    if args.block_number is None:
        return None
    return validate_block_number(args.block_number)


def cmd_block_header(args: argparse.Namespace) -> None:
    block_number = validate_block_number(args.block_number)
    validate_chain_id(args.chain_id)

    manager = StorageProofManager.for_chain(args.chain_id)
    info = asyncio.run(manager.get_block_info(block_number)).unwrap()

    filename = args.output or f"block_header_{block_number}.json"
    save_json_output(dict(info), filename)

    console.print(f'Block Number: {info["block_number"]}')
    console.print(f'Block Hash: {info["block_hash"]}')
    console.print(f'Block Timestamp: {info["block_timestamp"]}')
    console.print("[cyan]RLP Block Header:[/cyan]")
    console.print(f'[green]{info["rlp_block_header"]}[/green]')


def cmd_find_slot(args: argparse.Namespace) -> None:
    token = validate_eth_address(args.token, "token")
    holders = [validate_eth_address(h, "holder") for h in args.holder]
    validate_chain_id(args.chain_id)

    manager = StorageProofManager.for_chain(args.chain_id)
    result = asyncio.run(
        manager.find_balance_slots(
            token,
            holders,
            minime=args.minime,
            block_number=_optional_block(args),
        )
    )
    slots = result.unwrap()

    console.print(create_slots_table(slots, minime=args.minime))
    for warning in result.get_error_messages():
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def cmd_balance_proof(args: argparse.Namespace) -> None:
    token = validate_eth_address(args.token, "token")
    holder = validate_eth_address(args.holder, "holder")
    validate_chain_id(args.chain_id)

    manager = StorageProofManager.for_chain(args.chain_id)
    proof = asyncio.run(
        manager.get_balance_proof(
            token,
            holder,
            mapping_slot=args.slot,
            block_number=_optional_block(args),
            verify=not args.no_verify,
        )
    ).unwrap()

    output = {"token": token, "holder": holder, **proof.to_dict()}
    filename = args.output or f"balance_proof_{proof.header.number}.json"
    save_json_output(output, filename)

    console.print(create_proof_table(output))


def cmd_checkpoint_proof(args: argparse.Namespace) -> None:
    token = validate_eth_address(args.token, "token")
    holder = validate_eth_address(args.holder, "holder")
    validate_chain_id(args.chain_id)
    target_block = (
        None
        if args.target_block is None
        else validate_block_number(args.target_block)
    )

    manager = StorageProofManager.for_chain(args.chain_id)
    proof = asyncio.run(
        manager.get_checkpoint_proof(
            token,
            holder,
            map_index=args.map_index,
            target_block=target_block,
            block_number=_optional_block(args),
            verify=not args.no_verify,
        )
    ).unwrap()

    output = {"token": token, "holder": holder, **proof.to_dict()}
    filename = args.output or f"checkpoint_proof_{proof.header.number}.json"
    save_json_output(output, filename)

    console.print(create_proof_table(output))


def cmd_verify(args: argparse.Namespace) -> None:
    address = validate_eth_address(args.address, "address")
    state_root = validate_hash(args.state_root, "state_root")

    data = load_json(args.proof_file)
    # Files written by balance-proof / checkpoint-proof nest the response
    if "accountProof" not in data and "proof" in data:
        data = data["proof"]
    proof = AccountProof.from_rpc(data, address=address.lower())

    verify_account_and_storage(state_root, address, proof)
    console.print(
        f"[green]Valid:[/green] account {format_address(address)} and "
        f"{len(proof.storage_proofs)} storage slot(s)"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storage-proofs",
        description="Build and verify Ethereum storage proofs",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override PROOFS_LOG_LEVEL",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # block-header
    p_block = sub.add_parser(
        "block-header", help="Get the hash-checked RLP header of a block"
    )
    p_block.add_argument("--block-number", type=int, required=True)
    p_block.add_argument("--chain-id", type=int, default=1)
    p_block.add_argument("--output", type=str, help="Output filename")
    p_block.set_defaults(func=cmd_block_header)

    # find-slot
    p_fs = sub.add_parser(
        "find-slot", help="Discover the balance mapping slot of a token"
    )
    p_fs.add_argument("--token", type=str, required=True)
    p_fs.add_argument(
        "--holder",
        type=str,
        action="append",
        required=True,
        help="Holder with a non-zero balance (repeatable)",
    )
    p_fs.add_argument(
        "--minime", action="store_true", help="Token stores checkpoints"
    )
    p_fs.add_argument("--block-number", type=int)
    p_fs.add_argument("--chain-id", type=int, default=1)
    p_fs.set_defaults(func=cmd_find_slot)

    # balance-proof
    p_bp = sub.add_parser("balance-proof", help="Generate an ERC20 balance proof")
    p_bp.add_argument("--token", type=str, required=True)
    p_bp.add_argument("--holder", type=str, required=True)
    p_bp.add_argument(
        "--slot", type=int, help="Balance mapping slot (discovered if omitted)"
    )
    p_bp.add_argument("--block-number", type=int)
    p_bp.add_argument("--chain-id", type=int, default=1)
    p_bp.add_argument(
        "--no-verify", action="store_true", help="Skip local verification"
    )
    p_bp.add_argument("--output", type=str, help="Output filename")
    p_bp.set_defaults(func=cmd_balance_proof)

    # checkpoint-proof
    p_cp = sub.add_parser(
        "checkpoint-proof", help="Generate a MiniMe historical balance proof"
    )
    p_cp.add_argument("--token", type=str, required=True)
    p_cp.add_argument("--holder", type=str, required=True)
    p_cp.add_argument(
        "--map-index",
        type=int,
        help="Checkpoints mapping slot (discovered if omitted)",
    )
    p_cp.add_argument(
        "--target-block",
        type=int,
        help="Block whose balance is proven (defaults to --block-number)",
    )
    p_cp.add_argument("--block-number", type=int)
    p_cp.add_argument("--chain-id", type=int, default=1)
    p_cp.add_argument(
        "--no-verify", action="store_true", help="Skip local verification"
    )
    p_cp.add_argument("--output", type=str, help="Output filename")
    p_cp.set_defaults(func=cmd_checkpoint_proof)

    # verify
    p_v = sub.add_parser(
        "verify", help="Verify a saved eth_getProof response offline"
    )
    p_v.add_argument("--proof-file", type=str, required=True)
    p_v.add_argument("--state-root", type=str, required=True)
    p_v.add_argument("--address", type=str, required=True)
    p_v.set_defaults(func=cmd_verify)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)
    try:
        args.func(args)
    except Exception as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise


if __name__ == "__main__":
    main()
