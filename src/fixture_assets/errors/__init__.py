"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- AssetError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from fixture_assets.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base class
    AssetError,
    # Per-asset errors
    FetchError,
    IntegrityError,
    FilesystemError,
    # Declaration errors
    ManifestError,
    ConfigurationError,
    # Aggregate
    AssetsUnavailableError,
    # Classification utilities
    classify_http_status,
    classify_exception,
)

__all__ = [
    "ErrorCategory",
    "AssetError",
    "FetchError",
    "IntegrityError",
    "FilesystemError",
    "ManifestError",
    "ConfigurationError",
    "AssetsUnavailableError",
    "classify_http_status",
    "classify_exception",
]
