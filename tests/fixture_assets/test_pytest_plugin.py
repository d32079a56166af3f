"""Tests for the pytest plugin fixtures."""

import pytest
import yaml

from fixture_assets.config import AssetsConfig
from fixture_assets.errors import AssetsUnavailableError, IntegrityError
from fixture_assets.hashing import hash_bytes
from fixture_assets.models import TestAsset

CONTENT = b"plugin fixture"


@pytest.fixture(scope="session")
def plugin_root(tmp_path_factory):
    """Source file and manifest shared by the tests in this module."""
    root = tmp_path_factory.mktemp("plugin")
    sources = root / "sources"
    sources.mkdir()
    source = sources / "fixture.bin"
    source.write_bytes(CONTENT)
    (root / "assets.yaml").write_text(
        yaml.safe_dump(
            {
                "assets": [
                    {
                        "name": "fixture.bin",
                        "hash": str(hash_bytes(CONTENT)),
                        "source": source.as_uri(),
                    }
                ]
            }
        )
    )
    return root


@pytest.fixture(scope="session")
def fixture_assets_config(plugin_root):
    return AssetsConfig(
        cache_dir=plugin_root / "cache",
        manifest_path=plugin_root / "assets.yaml",
    )


@pytest.fixture
def asset(plugin_root):
    return TestAsset(
        name="fixture.bin",
        source=(plugin_root / "sources" / "fixture.bin").as_uri(),
        expected_hash=hash_bytes(CONTENT),
    )


def test_cache_dir_comes_from_config(fixture_assets_cache_dir, plugin_root):
    assert fixture_assets_cache_dir == plugin_root / "cache"


def test_materialize_returns_paths(materialize_assets, asset, plugin_root):
    paths = materialize_assets(asset)

    assert paths == {"fixture.bin": plugin_root / "cache" / "fixture.bin"}
    assert paths["fixture.bin"].read_bytes() == CONTENT


def test_materialize_accepts_sequences(materialize_assets, asset):
    assert list(materialize_assets([asset])) == ["fixture.bin"]


def test_materialize_raises_on_failure(materialize_assets, plugin_root):
    wrong = TestAsset(
        name="wrong.bin",
        source=(plugin_root / "sources" / "fixture.bin").as_uri(),
        expected_hash=hash_bytes(b"something else"),
    )

    with pytest.raises(AssetsUnavailableError) as exc_info:
        materialize_assets(wrong)

    assert exc_info.value.names == ["wrong.bin"]
    assert isinstance(exc_info.value.errors[0], IntegrityError)
    assert not (plugin_root / "cache" / "wrong.bin").exists()


def test_manifest_assets(manifest_assets, materialize_assets):
    assert [a.name for a in manifest_assets] == ["fixture.bin"]
    assert materialize_assets(manifest_assets)["fixture.bin"].read_bytes() == CONTENT
