"""
Unit tests for the command-line interface (offline commands only).
"""

import json
import logging

import pytest

from storage_proofs.cli import build_parser, cmd_balance_proof, cmd_verify, main
from storage_proofs.proofs.types import AccountProof
from storage_proofs.proofs.verifier import encode_account_rlp
from storage_proofs.shared.exceptions import ProofIntegrityError
from storage_proofs.shared.logging import PACKAGE_LOGGER
from storage_proofs.utils.blockchain import to_bytes

ACCOUNT = "0x4d98039ab1bfd7b7a7d6f0629bebb7aefd36286e"


@pytest.fixture
def saved_proof(tmp_path, trie_builder):
    """An account-only eth_getProof response on disk, plus its state root"""
    storage_root = to_bytes("0x56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421")
    code_hash = b"\x11" * 32
    leaf = encode_account_rlp(3, 10**18, storage_root, code_hash)
    state_root, nodes = trie_builder.single_leaf(to_bytes(ACCOUNT), leaf)
    proof = AccountProof(
        address=ACCOUNT,
        nonce=3,
        balance=10**18,
        code_hash=code_hash,
        storage_hash=storage_root,
        account_proof_nodes=tuple(nodes),
    )
    path = tmp_path / "proof.json"
    return path, proof, state_root


class TestParser:
    def test_commands_dispatch(self):
        parser = build_parser()
        args = parser.parse_args(
            ["balance-proof", "--token", ACCOUNT, "--holder", ACCOUNT, "--slot", "2"]
        )

        assert args.func is cmd_balance_proof
        assert args.slot == 2
        assert args.chain_id == 1
        assert not args.no_verify

    def test_repeatable_holder(self):
        args = build_parser().parse_args(
            ["find-slot", "--token", ACCOUNT, "--holder", "0x1", "--holder", "0x2", "--minime"]
        )
        assert args.holder == ["0x1", "0x2"]
        assert args.minime

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestVerifyCommand:
    def test_valid(self, saved_proof):
        path, proof, state_root = saved_proof
        path.write_text(json.dumps(proof.to_rpc()))

        args = build_parser().parse_args(
            [
                "verify",
                "--proof-file", str(path),
                "--state-root", "0x" + state_root.hex(),
                "--address", ACCOUNT,
            ]
        )
        cmd_verify(args)

    def test_jsonrpc_envelope_and_nested_output(self, saved_proof):
        path, proof, state_root = saved_proof
        path.write_text(
            json.dumps(
                {"jsonrpc": "2.0", "id": 1, "result": {"proof": proof.to_rpc()}}
            )
        )

        main(
            [
                "verify",
                "--proof-file", str(path),
                "--state-root", "0x" + state_root.hex(),
                "--address", ACCOUNT,
            ]
        )

    def test_wrong_state_root(self, saved_proof):
        path, proof, _ = saved_proof
        path.write_text(json.dumps(proof.to_rpc()))

        with pytest.raises(ProofIntegrityError):
            main(
                [
                    "verify",
                    "--proof-file", str(path),
                    "--state-root", "0x" + "00" * 32,
                    "--address", ACCOUNT,
                ]
            )

    def test_log_level_flag(self, saved_proof):
        path, proof, state_root = saved_proof
        path.write_text(json.dumps(proof.to_rpc()))
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        previous = package_logger.level

        try:
            main(
                [
                    "--log-level", "DEBUG",
                    "verify",
                    "--proof-file", str(path),
                    "--state-root", "0x" + state_root.hex(),
                    "--address", ACCOUNT,
                ]
            )
            assert package_logger.level == logging.DEBUG
        finally:
            package_logger.setLevel(previous)
