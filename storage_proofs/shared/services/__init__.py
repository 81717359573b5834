from storage_proofs.shared.services.provider import StateProvider
from storage_proofs.shared.services.web3_service import Web3Service

__all__ = ["StateProvider", "Web3Service"]
