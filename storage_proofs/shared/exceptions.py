"""
Exceptions raised by storage-proofs.

Two roots decide what the RPC retry policy does with a failure:

- RetryableException: the node may answer differently next time
  (TransportError).
- NonRetryableException: retrying cannot help. This covers missing data
  (NotFoundError), malformed input (DecodeError), bad configuration
  (ConfigurationException) and every rejected proof or claim
  (VerificationError and its subclasses).
"""

from typing import Dict, List, Optional


class RetryableException(Exception):
    """A transient failure: timeouts, rate limits, dropped connections."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NonRetryableException(Exception):
    """A failure that the same request will reproduce."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """Unsupported chain or missing RPC URL."""


class TransportError(RetryableException):
    """
    An RPC call failed after the collaborator's own retries.

    The verification core never retries it.
    """


class NotFoundError(NonRetryableException):
    """A block, account, proof or checkpoint does not exist."""


class SlotNotFoundError(NotFoundError):
    """A bounded slot probe exhausted its budget without a match."""


class DecodeError(NonRetryableException):
    """Malformed RLP or hex input."""


class VerificationError(NonRetryableException):
    """
    Base class for rejected proofs and claims.

    Attributes:
        check: Short name of the check that failed (e.g. "account", "storage_value")
        index: Storage-proof index the failure belongs to, if any
        detail: The message without its check prefix
    """

    def __init__(
        self,
        message: str,
        check: Optional[str] = None,
        index: Optional[int] = None,
    ):
        self.detail = message
        if index is not None:
            message = f"[{check or 'proof'} #{index}] {message}"
        elif check is not None:
            message = f"[{check}] {message}"
        super().__init__(message)
        self.check = check
        self.index = index


class ProofIntegrityError(VerificationError):
    """Hash mismatch, malformed trie node, or a structurally invalid proof."""


class StorageProofsError(ProofIntegrityError):
    """One or more storage proofs of a bundle failed verification."""

    def __init__(self, failures: Dict[int, Exception]):
        self.failures = dict(sorted(failures.items()))
        self.indices: List[int] = list(self.failures)
        joined = ", ".join(str(i) for i in self.indices)
        super().__init__(
            f"Some storage proof(s) are not valid: {joined}",
            check="storage",
        )


class ValueMismatchError(VerificationError):
    """A proven value disagrees with the claimed one."""


class HeaderHashMismatchError(VerificationError):
    """The reconstructed header does not hash to the reported block hash."""

    def __init__(self, computed: str, reported: str):
        super().__init__(
            f"Block header RLP hash ({computed}) doesn't match block hash ({reported})",
            check="header_hash",
        )
        self.computed = computed
        self.reported = reported
