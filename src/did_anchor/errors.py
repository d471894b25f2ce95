"""Exception hierarchy shared by every did-anchor component.

All errors derive from :class:`DIDAnchorError` so callers at the process
boundary (the CLI) can catch one type and turn it into an exit code. No
component in the library terminates the process on its own.

Hierarchy
---------
::

    DIDAnchorError
    ├── ParseError               malformed DID string
    ├── ValidationError          missing field, oversize id, wrong method
    ├── EncodingError            JSON or key-material (de)serialization
    ├── NetworkError             RPC or content-store transport failure
    │   └── TransactionFailedError   transaction mined but reverted
    ├── OperationTimeoutError    confirmation wait or deadline exceeded
    ├── OperationCancelledError  caller cancelled an in-flight call
    ├── DocumentNotFoundError    identifier never anchored
    ├── ContentNotFoundError     hash unknown to the content store
    └── VerificationFailure      credential signature did not verify
"""
from __future__ import annotations


class DIDAnchorError(Exception):
    """Base exception for all did-anchor errors."""


class ParseError(DIDAnchorError, ValueError):
    """Raised when a DID string is syntactically invalid."""

    def __init__(self, value: str, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid DID {value!r}: {reason}")


class ValidationError(DIDAnchorError, ValueError):
    """Raised when an input is well-formed but violates a rule."""


class EncodingError(DIDAnchorError, ValueError):
    """Raised when JSON or key material cannot be encoded or decoded."""


class NetworkError(DIDAnchorError):
    """Raised on chain RPC or content-store transport failure."""


class TransactionFailedError(NetworkError):
    """Raised when a registry transaction is mined with a failed status."""

    def __init__(self, transaction_hash: str, reason: str = "transaction reverted") -> None:
        self.transaction_hash = transaction_hash
        super().__init__(f"Transaction {transaction_hash} failed: {reason}")


class OperationTimeoutError(DIDAnchorError, TimeoutError):
    """Raised when a confirmation wait or caller deadline elapses."""


class OperationCancelledError(DIDAnchorError):
    """Raised when the caller's cancellation token fires mid-operation."""


class DocumentNotFoundError(DIDAnchorError):
    """Raised when the registry holds no content hash for an identifier."""

    def __init__(self, did: str) -> None:
        self.did = did
        super().__init__(f"DID {did!r} is not anchored in the registry.")


class ContentNotFoundError(DIDAnchorError, LookupError):
    """Raised when the content store does not know a hash."""

    def __init__(self, content_hash: str) -> None:
        self.content_hash = content_hash
        super().__init__(f"Content {content_hash!r} not found in the content store.")


class VerificationFailure(DIDAnchorError):
    """Raised when a credential cannot be verified.

    Parameters
    ----------
    message:
        Human-readable reason.
    cause:
        The underlying error when verification failed because of another
        failure (for example the issuer document could not be resolved).
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


__all__ = [
    "ContentNotFoundError",
    "DIDAnchorError",
    "DocumentNotFoundError",
    "EncodingError",
    "NetworkError",
    "OperationCancelledError",
    "OperationTimeoutError",
    "ParseError",
    "TransactionFailedError",
    "ValidationError",
    "VerificationFailure",
]
