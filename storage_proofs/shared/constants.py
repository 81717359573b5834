"""All constants for the project"""

import os

from dotenv import load_dotenv

from storage_proofs.shared.exceptions import ConfigurationException

load_dotenv()


class GlobalConstants:
    """Global class constants for the project"""

    CHAIN_ID_TO_RPC = {
        1: os.getenv("ETHEREUM_MAINNET_RPC_URL") or None,
        5: os.getenv("GOERLI_RPC_URL") or None,
        17000: os.getenv("HOLESKY_RPC_URL") or None,
        11155111: os.getenv("SEPOLIA_RPC_URL") or None,
    }

    # Chain names as used by the hardfork table
    CHAIN_NAMES = {
        1: "mainnet",
        3: "ropsten",
        4: "rinkeby",
        5: "goerli",
        17000: "holesky",
        11155111: "sepolia",
    }

    @staticmethod
    def get_rpc_url(chain_id: int) -> str:
        """Get RPC URL for specified chain"""
        chain_id = int(chain_id)
        if chain_id not in GlobalConstants.CHAIN_ID_TO_RPC:
            raise ConfigurationException(f"Chain ID {chain_id} not supported")

        rpc_url = GlobalConstants.CHAIN_ID_TO_RPC[chain_id]
        if not rpc_url:
            raise ConfigurationException(
                f"RPC URL not set for chain {chain_id}"
            )

        return rpc_url

    @staticmethod
    def get_chain_name(chain_id: int) -> str:
        """Chain name for hardfork resolution (unknown ids map to their number)"""
        return GlobalConstants.CHAIN_NAMES.get(int(chain_id), str(chain_id))


class ProofConstants:
    """Constants of the proof protocols"""

    # Bounded probe budgets for slot discovery
    MAX_BALANCE_SLOT_ATTEMPTS = 50
    MAX_CHECKPOINT_SLOT_ATTEMPTS = 20

    # A checkpoint key must sit within this many slots of its array base
    CHECKPOINT_SLOT_WINDOW = 65536

    # keccak256(rlp(b""))
    EMPTY_TRIE_ROOT = (
        "0x56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"
    )
    # keccak256(b"")
    EMPTY_CODE_HASH = (
        "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )


ERC20_BALANCE_OF_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    }
]
