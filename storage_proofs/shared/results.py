"""
Result values returned by StorageProofManager.

Proof generation talks to an untrusted node and fails in many ways (missing
block, slot not found, rejected proof). The manager turns those failures into
a failed Result carrying the original exception, so batch callers can keep
going and single callers can ``unwrap()`` to get the exception back.

Verification functions never return a Result: a rejected proof always
raises.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorSeverity(Enum):
    WARNING = "warning"  # data still usable
    ERROR = "error"  # no data


@dataclass
class ProcessingError:
    """
    One failure or warning attached to a Result.

    ``source`` names the manager operation ("block_info", "balance_proof",
    "checkpoint_proof", "slot_discovery"); ``context`` holds the token,
    holder and block it was working on.
    """

    source: str
    message: str
    severity: ErrorSeverity
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "source": self.source,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
        }
        if self.exception is not None:
            data["exception"] = type(self.exception).__name__
        return data


@dataclass
class Result(Generic[T]):
    """Outcome of a manager operation: data on success, errors on failure."""

    success: bool
    data: Optional[T] = None
    errors: List[ProcessingError] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ProcessingError) -> "Result[T]":
        return cls(success=False, errors=[error])

    @classmethod
    def fail_with_message(
        cls,
        source: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None,
    ) -> "Result[T]":
        return cls.fail(
            ProcessingError(
                source=source,
                message=message,
                severity=ErrorSeverity.ERROR,
                context=dict(context or {}),
                exception=exception,
            )
        )

    @classmethod
    def from_exception(
        cls,
        source: str,
        action: str,
        exception: Exception,
        context: Optional[Dict[str, Any]] = None,
    ) -> "Result[T]":
        """Failed result for ``exception`` raised while ``action``"""
        return cls.fail_with_message(
            source=source,
            message=f"Error {action}: {exception}",
            context=context,
            exception=exception,
        )

    def add_warning(
        self,
        source: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> "Result[T]":
        self.errors.append(
            ProcessingError(
                source=source,
                message=message,
                severity=ErrorSeverity.WARNING,
                context=dict(context or {}),
            )
        )
        return self

    def unwrap(self) -> T:
        """
        Data of a successful result.

        On failure, re-raises the first attached exception, or raises a
        RuntimeError built from the messages when none was attached.
        """
        if self.success:
            return self.data  # type: ignore[return-value]
        for error in self.errors:
            if error.exception is not None:
                raise error.exception
        raise RuntimeError("; ".join(self.get_error_messages()) or "operation failed")

    def has_errors(self) -> bool:
        return any(e.severity is ErrorSeverity.ERROR for e in self.errors)

    def has_warnings(self) -> bool:
        return any(e.severity is ErrorSeverity.WARNING for e in self.errors)

    def get_error_messages(self) -> List[str]:
        return [e.message for e in self.errors]
