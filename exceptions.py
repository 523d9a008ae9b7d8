"""
Exception Hierarchy for the Jito Bundle Relay client.

Every error raised by the client derives from JitoRelayError and carries:
- Unique error code for logging and debugging
- Descriptive message
- Optional context dictionary for additional debugging info
- is_recoverable flag indicating if the caller may retry
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from datetime import datetime, timezone


# =============================================================================
# BASE EXCEPTIONS
# =============================================================================

@dataclass
class JitoRelayError(Exception):
    """
    Base exception for all relay client errors.

    Attributes:
        message: Human-readable error description
        error_code: Unique identifier for the error type (e.g., "NET_001")
        context: Optional dictionary with debugging information
        is_recoverable: Whether the operation can be retried
        retry_after: Seconds to wait before retry (for rate limits)
        timestamp: When the error occurred
    """
    message: str
    error_code: str = "GENERAL_001"
    context: dict[str, Any] = field(default_factory=dict)
    is_recoverable: bool = False
    retry_after: Optional[float] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        """Initialize the exception with the formatted message."""
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message with code and context."""
        base = f"[{self.error_code}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" | Context: {context_str}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "is_recoverable": self.is_recoverable,
            "retry_after": self.retry_after,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        return self.format_message()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"is_recoverable={self.is_recoverable})"
        )


@dataclass
class ConfigurationError(JitoRelayError):
    """A required setting or parameter is missing or invalid."""
    error_code: str = "CONFIG_001"
    is_recoverable: bool = False
    parameter: Optional[str] = None


# =============================================================================
# NETWORK EXCEPTIONS
# =============================================================================

@dataclass
class NetworkError(JitoRelayError):
    """Base exception for network-related errors."""
    error_code: str = "NET_000"
    is_recoverable: bool = True


@dataclass
class TransportError(NetworkError):
    """HTTP request failed or returned a non-success status."""
    error_code: str = "NET_001"
    status_code: Optional[int] = None
    url: Optional[str] = None


# =============================================================================
# DATA EXCEPTIONS
# =============================================================================

@dataclass
class DataError(JitoRelayError):
    """Base exception for data-related errors."""
    error_code: str = "DATA_000"


@dataclass
class EmptyDataError(DataError):
    """Upstream returned an empty sequence."""
    error_code: str = "DATA_001"
    is_recoverable: bool = True
    source: Optional[str] = None


@dataclass
class NoDataError(DataError):
    """No usable sample was available to derive a recommendation from."""
    error_code: str = "DATA_002"
    is_recoverable: bool = True


@dataclass
class DeserializationError(DataError):
    """Response payload did not have the expected shape."""
    error_code: str = "DATA_003"
    is_recoverable: bool = False
    data_type: Optional[str] = None


# =============================================================================
# JSON-RPC EXCEPTIONS
# =============================================================================

@dataclass
class JsonRpcError(JitoRelayError):
    """The endpoint answered with a JSON-RPC error object."""
    error_code: str = "RPC_001"
    rpc_code: Optional[int] = None
    rpc_message: Optional[str] = None
    method: Optional[str] = None


@dataclass
class SubmissionError(JsonRpcError):
    """The relay accepted the request but returned no result."""
    error_code: str = "RPC_002"
    is_recoverable: bool = True


# =============================================================================
# VALIDATION EXCEPTIONS
# =============================================================================

@dataclass
class ValidationError(JitoRelayError):
    """Base exception for input validation errors."""
    error_code: str = "VAL_000"
    field_name: Optional[str] = None


@dataclass
class InvalidAddressError(ValidationError):
    """Invalid Solana address format."""
    error_code: str = "VAL_001"
    address: Optional[str] = None


@dataclass
class InvalidAmountError(ValidationError):
    """Invalid fee or tip amount."""
    error_code: str = "VAL_002"
    amount: Optional[str] = None


@dataclass
class BundleValidationError(ValidationError):
    """Bundle is empty, too large, or carries an unsupported encoding."""
    error_code: str = "VAL_003"
    transaction_count: Optional[int] = None


# =============================================================================
# BUNDLE LIFECYCLE EXCEPTIONS
# =============================================================================

@dataclass
class BundleError(JitoRelayError):
    """Base exception for bundle lifecycle errors."""
    error_code: str = "BUNDLE_000"
    bundle_id: Optional[str] = None


@dataclass
class BundleSimulationError(BundleError):
    """Simulation reported an error; the bundle was not sent."""
    error_code: str = "BUNDLE_001"
    is_recoverable: bool = False
    err: Any = None
    simulation_logs: list[list[str]] = field(default_factory=list)


@dataclass
class ConfirmationTimeoutError(BundleError):
    """
    Polling exceeded its budget without reaching a terminal state.

    Inclusion is undetermined, not failed.
    """
    error_code: str = "BUNDLE_002"
    is_recoverable: bool = True
    elapsed: Optional[float] = None
    timeout: Optional[float] = None


@dataclass
class ConfirmationCancelledError(BundleError):
    """Polling was aborted through the cancellation event."""
    error_code: str = "BUNDLE_003"
    is_recoverable: bool = True
    elapsed: Optional[float] = None


@dataclass
class UnknownStatusShape(BundleError):
    """Status response matched none of the recognised shapes. Non-fatal."""
    error_code: str = "BUNDLE_004"
    is_recoverable: bool = True
    response: Any = None


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, JitoRelayError):
        return error.is_recoverable
    return False


def wrap_exception(
    original: Exception,
    wrapper_class: type[JitoRelayError],
    message: Optional[str] = None,
    **kwargs: Any
) -> JitoRelayError:
    """Wrap a generic exception in a JitoRelayError subclass."""
    msg = message or str(original)
    context = kwargs.pop("context", {})
    context["original_error"] = type(original).__name__
    context["original_message"] = str(original)

    return wrapper_class(
        message=msg,
        context=context,
        **kwargs
    )


__all__ = [
    "JitoRelayError", "ConfigurationError",
    "NetworkError", "TransportError",
    "DataError", "EmptyDataError", "NoDataError", "DeserializationError",
    "JsonRpcError", "SubmissionError",
    "ValidationError", "InvalidAddressError", "InvalidAmountError",
    "BundleValidationError",
    "BundleError", "BundleSimulationError", "ConfirmationTimeoutError",
    "ConfirmationCancelledError", "UnknownStatusShape",
    "is_retryable", "wrap_exception",
]
