"""
Retry policy for calls made by the RPC collaborator.

Nothing in the verification core retries: a rejected proof is final. Only
transport calls (eth_getProof, eth_getBlockByNumber, eth_getStorageAt,
balanceOf) are run through a RetryConfig.

Classification:
- FATAL_EXCEPTIONS propagate on the first occurrence. They cover our own
  NonRetryableException and the web3 errors that are definitive node answers
  (unknown block, reverted call, undecodable output).
- DEFAULT_RETRYABLE_EXCEPTIONS are retried with backoff.
- Anything else propagates unchanged.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from web3.exceptions import (
    BadFunctionCallOutput,
    BlockNotFound,
    ContractLogicError,
    Web3Exception,
)

from storage_proofs.shared.exceptions import (
    NonRetryableException,
    RetryableException,
)
from storage_proofs.shared.logging import get_logger

T = TypeVar("T")

_logger = get_logger(__name__)

DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    RetryableException,
    ConnectionError,
    TimeoutError,
    OSError,
    Web3Exception,
)

# Matched first: several of these subclass Web3Exception
FATAL_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    NonRetryableException,
    BlockNotFound,
    ContractLogicError,
    BadFunctionCallOutput,
)

OnRetry = Callable[[Exception, int], None]


@dataclass(frozen=True)
class RetryConfig:
    """
    Attempts and backoff shared by a group of RPC calls.

    ``delay(n)`` is the pause after the n-th failed attempt (0-based):
    ``base_delay * 2**n`` capped at ``max_delay``, or a flat ``base_delay``
    when ``exponential`` is off.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = DEFAULT_RETRYABLE_EXCEPTIONS

    def delay(self, attempt: int) -> float:
        if not self.exponential:
            return self.base_delay
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def run(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        operation_name: Optional[str] = None,
        on_retry: Optional[OnRetry] = None,
        **kwargs: Any,
    ) -> T:
        """Await ``operation(*args, **kwargs)`` under this policy"""
        return await retry_async_operation(
            operation,
            *args,
            config=self,
            operation_name=operation_name,
            on_retry=on_retry,
            **kwargs,
        )


# Policy of the web3 collaborator
RPC_RETRY_CONFIG = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=10.0)


async def retry_async_operation(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    operation_name: Optional[str] = None,
    on_retry: Optional[OnRetry] = None,
    **kwargs: Any,
) -> T:
    """
    Await an RPC call, retrying transient failures.

    Args:
        operation: Coroutine function to call
        config: Retry policy (RetryConfig() when None)
        operation_name: Name used in log lines (defaults to the function name)
        on_retry: Called with (exception, failed attempt number) before
            each pause

    Raises:
        The last retryable exception once attempts are exhausted, or the
        first fatal / unclassified one.

    Example:
        response = await retry_async_operation(
            w3.eth.get_proof, address, slots, block_number,
            config=RPC_RETRY_CONFIG, operation_name="eth_getProof",
        )
    """
    config = config or RetryConfig()
    name = operation_name or getattr(operation, "__name__", "operation")

    attempt = 0
    while True:
        try:
            return await operation(*args, **kwargs)
        except FATAL_EXCEPTIONS:
            raise
        except config.retryable_exceptions as e:
            if attempt + 1 >= config.max_attempts:
                _logger.error(f"{name} failed after {config.max_attempts} attempts: {e}")
                raise
            delay = config.delay(attempt)
            _logger.warning(
                f"{name} attempt {attempt + 1}/{config.max_attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s"
            )
            if on_retry:
                on_retry(e, attempt + 1)
            await asyncio.sleep(delay)
            attempt += 1

