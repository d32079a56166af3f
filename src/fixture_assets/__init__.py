"""
fixture_assets: download, verify and cache test fixture files.

Tests declare the assets they need; ensure() makes each one present under a
cache directory with a matching hash, fetching only what is missing or
corrupt and placing files atomically.

    from fixture_assets import TestAsset, ensure_sync

    result = ensure_sync(
        [TestAsset(name="fixture.bin", source="https://...", expected_hash="sha256:...")],
        ".fixture-assets",
    )
    path = result.raise_for_errors().path_for("fixture.bin")
"""

__version__ = "0.1.0"

from fixture_assets.config import AssetsConfig
from fixture_assets.errors import (
    AssetError,
    AssetsUnavailableError,
    ConfigurationError,
    ErrorCategory,
    FetchError,
    FilesystemError,
    IntegrityError,
    ManifestError,
)
from fixture_assets.hashing import Digest
from fixture_assets.manifest import HashList, load_asset_manifest
from fixture_assets.materializer import AssetMaterializer, ensure, ensure_sync
from fixture_assets.models import AssetOutcome, AssetStatus, EnsureResult, TestAsset

__all__ = [
    "__version__",
    # Declarations and results
    "TestAsset",
    "Digest",
    "AssetOutcome",
    "AssetStatus",
    "EnsureResult",
    # Materialization
    "AssetMaterializer",
    "ensure",
    "ensure_sync",
    # Manifests and config
    "HashList",
    "load_asset_manifest",
    "AssetsConfig",
    # Errors
    "ErrorCategory",
    "AssetError",
    "FetchError",
    "IntegrityError",
    "FilesystemError",
    "ManifestError",
    "ConfigurationError",
    "AssetsUnavailableError",
]
