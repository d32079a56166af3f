"""
Pytest fixtures for materialized test assets.

Enable in a conftest.py:

    pytest_plugins = ["fixture_assets.pytest_plugin"]

Then in a test:

    def test_decoder(materialize_assets):
        paths = materialize_assets(
            TestAsset(
                name="sample.bin",
                source="https://example.test/sample.bin",
                expected_hash="sha256:...",
            )
        )
        assert decode(paths["sample.bin"].read_bytes())

Settings come from AssetsConfig.load_config(); override the
``fixture_assets_config`` fixture to change them for a test module.
"""

from pathlib import Path
from typing import Callable, Dict, List, Union

import pytest

from fixture_assets.config import AssetsConfig
from fixture_assets.manifest import load_asset_manifest
from fixture_assets.materializer import ensure_sync
from fixture_assets.models import TestAsset

MaterializeFn = Callable[..., Dict[str, Path]]


@pytest.fixture(scope="session")
def fixture_assets_config() -> AssetsConfig:
    return AssetsConfig.load_config()


@pytest.fixture
def fixture_assets_cache_dir(fixture_assets_config: AssetsConfig) -> Path:
    return fixture_assets_config.cache_dir


@pytest.fixture
def materialize_assets(fixture_assets_config: AssetsConfig) -> MaterializeFn:
    """
    Callable that materializes assets and returns {name: path}.

    Accepts TestAsset arguments or sequences of them. Raises
    AssetsUnavailableError (failing the test) when any asset can't be
    materialized. Synchronous: call it from sync tests or fixtures.
    """

    def _materialize(*assets: Union[TestAsset, List[TestAsset]]) -> Dict[str, Path]:
        declared: List[TestAsset] = []
        for item in assets:
            if isinstance(item, TestAsset):
                declared.append(item)
            else:
                declared.extend(item)
        result = ensure_sync(
            declared,
            fixture_assets_config.cache_dir,
            **fixture_assets_config.materializer_options(),
        )
        return result.raise_for_errors().paths

    return _materialize


@pytest.fixture(scope="session")
def manifest_assets(fixture_assets_config: AssetsConfig) -> List[TestAsset]:
    """Assets declared in the configured manifest, or [] when none is set."""
    if fixture_assets_config.manifest_path is None:
        return []
    return load_asset_manifest(fixture_assets_config.manifest_path)
