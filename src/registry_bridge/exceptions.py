"""Custom exceptions for the registry bridge.

Exception Hierarchy:
    BridgeError (base)
    ├── ValidationError            # Malformed locator, disallowed registry, bad move request
    ├── UpstreamError              # Registry or Nexus answered with an error status
    │   ├── UpstreamClientError    # 4xx, never retried
    │   └── TransientUpstreamError # 5xx, network failure or timeout, retried
    ├── ProtocolViolationError     # 2xx response missing a required invariant
    ├── IntegrationDisabledError   # Move capability not configured
    └── UnknownError               # Anything not otherwise classified

Every error carries an explicit ``kind`` so callers can switch on it without
inspecting the class, plus the status ``code`` and ``source_system`` telling
which upstream failed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """Discriminant shared by every bridge failure."""

    VALIDATION = "VALIDATION"
    UPSTREAM = "UPSTREAM"
    PROTOCOL_VIOLATION = "PROTOCOL_VIOLATION"
    INTEGRATION_DISABLED = "INTEGRATION_DISABLED"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class Failure:
    """Immutable record of a failure, used where errors are collected per item."""

    kind: FailureKind
    message: str
    code: Optional[int] = None
    source_system: Optional[str] = None
    reference: Optional[str] = None


class BridgeError(Exception):
    """Base exception for all registry bridge errors."""

    kind: FailureKind = FailureKind.UNKNOWN
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        source_system: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.source_system = source_system
        self.cause = cause

    def to_failure(self, reference: Optional[str] = None) -> Failure:
        """Convert the error into a :class:`Failure` record.

        Args:
            reference: What the failing operation was about (e.g. a locator path)

        Returns:
            Failure carrying kind, message, code and source system
        """
        return Failure(
            kind=self.kind,
            message=self.message,
            code=self.code,
            source_system=self.source_system,
            reference=reference,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value}, code={self.code}, "
            f"source_system={self.source_system!r}, message={self.message!r})"
        )


class ValidationError(BridgeError):
    """Raised when caller input is malformed or not allowed."""

    kind = FailureKind.VALIDATION

    def __init__(self, message: str, code: Optional[int] = 400) -> None:
        super().__init__(message, code=code)


class UpstreamError(BridgeError):
    """Raised when an upstream system answers with an error."""

    kind = FailureKind.UPSTREAM


class UpstreamClientError(UpstreamError):
    """Raised for 4xx answers. Permanent, so never retried."""

    pass


class TransientUpstreamError(UpstreamError):
    """Raised for 5xx answers, network failures and timeouts."""

    retryable = True


class ProtocolViolationError(BridgeError):
    """Raised when a successful response omits a required invariant."""

    kind = FailureKind.PROTOCOL_VIOLATION


class IntegrationDisabledError(BridgeError):
    """Raised when an integration is called that is not configured."""

    kind = FailureKind.INTEGRATION_DISABLED


class UnknownError(BridgeError):
    """Raised for errors that fit no other category. Always keeps the cause."""

    kind = FailureKind.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: BaseException,
        source_system: Optional[str] = None,
    ) -> None:
        super().__init__(message, source_system=source_system, cause=cause)
