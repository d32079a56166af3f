"""
Exception types and error classification for fixture_assets.

Provides:
- ErrorCategory enum describing whether a failure may clear up on its own
- Typed exception hierarchy for asset materialization errors
- Error classification utilities
"""

from enum import Enum
from typing import TYPE_CHECKING, Iterable, List, Optional

if TYPE_CHECKING:
    from fixture_assets.hashing import Digest


class ErrorCategory(Enum):
    """
    Classification of error types.

    Categories:
        TRANSIENT: Temporary failures that may succeed when re-invoked
                   (e.g., network timeouts, 429/503 responses)
        AUTH: The source rejected our credentials (401)
        PERMANENT: Failures that won't succeed on re-invocation
                   (e.g., 404, hash mismatches, unwritable cache directory)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class AssetError(Exception):
    """
    Base exception for all asset errors.

    Attributes:
        message: Human-readable error description
        name: Name of the offending asset, when known
        category: Error classification
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.name = name
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether calling ensure() again could plausibly succeed."""
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.AUTH,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [f"[{self.name}] {self.message}" if self.name else self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class FetchError(AssetError):
    """Source unreachable or returned a non-success response."""

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        category: Optional[ErrorCategory] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, name=name, cause=cause, context=context)
        self.url = url
        self.status_code = status_code
        if category is not None:
            self.category = category
        elif status_code is not None:
            self.category = classify_http_status(status_code)
        elif cause is not None:
            self.category = classify_exception(cause)
        else:
            self.category = ErrorCategory.TRANSIENT


class IntegrityError(AssetError):
    """Fetched bytes don't match the declared hash.

    Attributes:
        expected: Declared Digest
        actual: Digest of the fetched bytes
    """

    category = ErrorCategory.PERMANENT

    def __init__(
        self,
        name: str,
        expected: "Digest",
        actual: "Digest",
        context: Optional[dict] = None,
    ):
        super().__init__(
            f"Hash mismatch: expected {expected}, got {actual}",
            name=name,
            context=context,
        )
        self.expected = expected
        self.actual = actual


class FilesystemError(AssetError):
    """Cache directory can't be created, read or written."""

    category = ErrorCategory.PERMANENT


class ManifestError(AssetError):
    """Asset manifest is unreadable or malformed."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(AssetError):
    """Invalid configuration."""

    category = ErrorCategory.PERMANENT


class AssetsUnavailableError(AssetError):
    """One or more declared assets could not be materialized."""

    category = ErrorCategory.PERMANENT

    def __init__(self, errors: Iterable[AssetError]):
        self.errors: List[AssetError] = list(errors)
        lines = [f"{len(self.errors)} asset(s) could not be materialized:"]
        for err in self.errors:
            kind = type(err).__name__
            lines.append(f"  - {err.name or '<unknown>'}: {kind}: {err.message}")
        super().__init__("\n".join(lines))

    @property
    def names(self) -> List[str]:
        return [err.name for err in self.errors if err.name]

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """
    Classify HTTP status code into error category.

    Args:
        status_code: HTTP response status

    Returns:
        Appropriate ErrorCategory
    """
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def classify_exception(exc: Exception) -> ErrorCategory:
    """
    Classify an exception into error category.

    Args:
        exc: Exception to classify

    Returns:
        Appropriate ErrorCategory
    """
    # Already classified
    if isinstance(exc, AssetError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    if isinstance(exc, FileNotFoundError):
        return ErrorCategory.PERMANENT

    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "serverdisconnected",
        "no route to host",
        "network unreachable",
        "name resolution",
        "dns",
        "socket",
        "broken pipe",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    if "401" in exc_str or "unauthorized" in exc_str:
        return ErrorCategory.AUTH

    if "429" in exc_str or "503" in exc_str or "502" in exc_str or "504" in exc_str:
        return ErrorCategory.TRANSIENT

    if "403" in exc_str or "forbidden" in exc_str or "access denied" in exc_str:
        return ErrorCategory.PERMANENT

    if "404" in exc_str or "not found" in exc_str:
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN
