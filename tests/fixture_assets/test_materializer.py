"""
Tests for AssetMaterializer / ensure().

Test coverage:
- First call fetches, second call is served from cache without fetching
- Hash mismatch fails the asset and leaves nothing at the target path
- Concurrent callers never expose a partial file at the target path
- Corrupt cache entries are re-fetched, or removed when re-fetching fails
- Fetch and filesystem failures are reported per asset
- Slow sources time out as transient failures
- Names at the length limit still fit their temp file name
- The caller's log context is restored
- Declaration list validation
- Session ownership
"""

import asyncio
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from fixture_assets.download import create_session
from fixture_assets.errors import (
    AssetsUnavailableError,
    ErrorCategory,
    FetchError,
    FilesystemError,
    IntegrityError,
)
from fixture_assets.hashing import hash_bytes
from fixture_assets.logging.context import clear_log_context, get_log_context, set_log_context
from fixture_assets.materializer import AssetMaterializer, ensure, ensure_sync, unique_assets
from fixture_assets.models import AssetStatus, TestAsset
from fixture_assets.security import MAX_NAME_LENGTH

CONTENT = b"fixture payload " * 512


def declare(name, content, source):
    return TestAsset(name=name, source=source, expected_hash=hash_bytes(content))


def leftover_temp_files(cache_dir):
    return [p.name for p in cache_dir.iterdir() if p.name.endswith(".part")]


class TestEnsureHttp:
    @pytest.mark.asyncio
    async def test_first_call_fetches_second_call_is_cached(self, asset_server, cache_dir):
        asset = declare("fixture.bin", CONTENT, asset_server.add("fixture.bin", CONTENT))

        first = await ensure([asset], cache_dir)

        assert first.ok
        assert first.outcomes[0].status is AssetStatus.DOWNLOADED
        assert first.outcomes[0].bytes_downloaded == len(CONTENT)
        assert (cache_dir / "fixture.bin").read_bytes() == CONTENT
        assert asset_server.hits["fixture.bin"] == 1

        with patch("fixture_assets.materializer.create_session") as mock_create:
            second = await ensure([asset], cache_dir)

        assert second.ok
        assert second.outcomes[0].status is AssetStatus.CACHED
        assert second.path_for("fixture.bin") == cache_dir / "fixture.bin"
        assert asset_server.hits["fixture.bin"] == 1
        mock_create.assert_not_called()

    @pytest.mark.asyncio
    async def test_hash_mismatch_leaves_no_file(self, asset_server, cache_dir):
        url = asset_server.add("fixture.bin", b"unexpected bytes")
        asset = declare("fixture.bin", CONTENT, url)

        result = await ensure([asset], cache_dir)

        assert not result.ok
        outcome = result.outcomes[0]
        assert outcome.status is AssetStatus.FAILED
        assert isinstance(outcome.error, IntegrityError)
        assert outcome.error.name == "fixture.bin"
        assert outcome.error.expected == asset.expected_hash
        assert outcome.error.actual == hash_bytes(b"unexpected bytes")
        assert outcome.actual_hash == hash_bytes(b"unexpected bytes")
        assert not (cache_dir / "fixture.bin").exists()
        assert leftover_temp_files(cache_dir) == []

    @pytest.mark.asyncio
    async def test_corrupt_cache_entry_is_refetched(self, asset_server, cache_dir):
        asset = declare("fixture.bin", CONTENT, asset_server.add("fixture.bin", CONTENT))
        cache_dir.mkdir()
        (cache_dir / "fixture.bin").write_bytes(b"truncated")

        result = await ensure([asset], cache_dir)

        assert result.ok
        assert result.outcomes[0].status is AssetStatus.DOWNLOADED
        assert (cache_dir / "fixture.bin").read_bytes() == CONTENT
        assert asset_server.hits["fixture.bin"] == 1

    @pytest.mark.asyncio
    async def test_corrupt_cache_entry_removed_when_refetch_fails(
        self, asset_server, cache_dir
    ):
        asset = declare("fixture.bin", CONTENT, asset_server.url("/assets/fixture.bin"))
        cache_dir.mkdir()
        (cache_dir / "fixture.bin").write_bytes(b"truncated")

        result = await ensure([asset], cache_dir)

        assert isinstance(result.outcomes[0].error, FetchError)
        assert not (cache_dir / "fixture.bin").exists()

    @pytest.mark.asyncio
    async def test_not_found(self, asset_server, cache_dir):
        asset = declare("missing.bin", CONTENT, asset_server.url("/assets/missing.bin"))

        result = await ensure([asset], cache_dir)

        error = result.outcomes[0].error
        assert isinstance(error, FetchError)
        assert error.name == "missing.bin"
        assert error.status_code == 404
        assert error.category == ErrorCategory.PERMANENT
        assert leftover_temp_files(cache_dir) == []

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self, asset_server, cache_dir):
        asset = declare("slow.bin", CONTENT, asset_server.add("slow.bin", CONTENT))
        asset_server.chunk_delay = 0.5

        result = await ensure([asset], cache_dir, timeout_seconds=0.2)

        error = result.outcomes[0].error
        assert isinstance(error, FetchError)
        assert error.name == "slow.bin"
        assert error.category == ErrorCategory.TRANSIENT
        assert "Timed out" in error.message
        assert not (cache_dir / "slow.bin").exists()
        assert leftover_temp_files(cache_dir) == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, asset_server, cache_dir):
        good = declare("good.bin", CONTENT, asset_server.add("good.bin", CONTENT))
        bad = declare("bad.bin", CONTENT, asset_server.url("/assets/bad.bin"))
        other = declare("other.bin", b"other", asset_server.add("other.bin", b"other"))

        result = await ensure([good, bad, other], cache_dir)

        assert [o.name for o in result.outcomes] == ["good.bin", "bad.bin", "other.bin"]
        assert [o.status for o in result.outcomes] == [
            AssetStatus.DOWNLOADED,
            AssetStatus.FAILED,
            AssetStatus.DOWNLOADED,
        ]
        with pytest.raises(AssetsUnavailableError) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.names == ["bad.bin"]

    @pytest.mark.asyncio
    async def test_concurrent_callers_never_expose_partial_file(
        self, asset_server, cache_dir
    ):
        content = os.urandom(256 * 1024)
        asset_server.chunk_size = 4096
        asset_server.chunk_delay = 0.001
        asset = declare("big.bin", content, asset_server.add("big.bin", content))
        target = cache_dir / "big.bin"

        observed = []
        done = asyncio.Event()

        async def observe():
            while not done.is_set():
                try:
                    observed.append(target.read_bytes())
                except FileNotFoundError:
                    pass
                await asyncio.sleep(0)

        observer = asyncio.create_task(observe())
        try:
            results = await asyncio.gather(
                ensure([asset], cache_dir),
                ensure([asset], cache_dir),
            )
        finally:
            done.set()
            await observer

        assert all(r.ok for r in results)
        assert target.read_bytes() == content
        assert all(data == content for data in observed)
        assert sorted(p.name for p in cache_dir.iterdir()) == ["big.bin"]

    @pytest.mark.asyncio
    async def test_shared_session_is_not_closed(self, asset_server, cache_dir):
        asset = declare("fixture.bin", CONTENT, asset_server.add("fixture.bin", CONTENT))

        async with create_session() as session:
            materializer = AssetMaterializer(cache_dir, session=session)
            result = await materializer.ensure([asset])
            assert result.ok
            assert not session.closed

    @pytest.mark.asyncio
    async def test_logs_download(self, asset_server, cache_dir, caplog):
        caplog.set_level(logging.INFO, logger="fixture_assets")
        asset = declare("fixture.bin", CONTENT, asset_server.add("fixture.bin", CONTENT))

        await ensure([asset], cache_dir)

        records = [r for r in caplog.records if r.getMessage() == "Asset downloaded"]
        assert len(records) == 1
        assert records[0].asset_name == "fixture.bin"
        assert records[0].bytes_downloaded == len(CONTENT)
        summary = [r for r in caplog.records if r.getMessage() == "Assets materialized"]
        assert summary[0].assets_downloaded == 1


class TestEnsureFile:
    @pytest.mark.asyncio
    async def test_file_sources_never_open_a_session(self, source_dir, cache_dir):
        source = source_dir / "fixture.bin"
        source.write_bytes(CONTENT)
        asset = declare("fixture.bin", CONTENT, source.as_uri())

        with patch("fixture_assets.materializer.create_session") as mock_create:
            result = await ensure([asset], cache_dir)

        assert result.ok
        assert (cache_dir / "fixture.bin").read_bytes() == CONTENT
        mock_create.assert_not_called()

    @pytest.mark.asyncio
    async def test_sha512_declaration(self, source_dir, cache_dir):
        source = source_dir / "fixture.bin"
        source.write_bytes(CONTENT)
        asset = TestAsset(
            name="fixture.bin",
            source=source.as_uri(),
            expected_hash=hash_bytes(CONTENT, "sha512"),
        )

        first = await ensure([asset], cache_dir)
        second = await ensure([asset], cache_dir)

        assert first.outcomes[0].status is AssetStatus.DOWNLOADED
        assert second.outcomes[0].status is AssetStatus.CACHED

    @pytest.mark.asyncio
    async def test_unusable_cache_dir_fails_every_asset(self, source_dir, tmp_path):
        source = source_dir / "fixture.bin"
        source.write_bytes(CONTENT)
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        assets = [
            declare("a.bin", CONTENT, source.as_uri()),
            declare("b.bin", CONTENT, source.as_uri()),
        ]

        result = await ensure(assets, blocker)

        assert len(result.failed) == 2
        assert all(isinstance(e, FilesystemError) for e in result.errors)
        assert [e.name for e in result.errors] == ["a.bin", "b.bin"]

    @pytest.mark.asyncio
    async def test_directory_at_target_path(self, source_dir, cache_dir):
        source = source_dir / "fixture.bin"
        source.write_bytes(CONTENT)
        (cache_dir / "fixture.bin").mkdir(parents=True)

        result = await ensure([declare("fixture.bin", CONTENT, source.as_uri())], cache_dir)

        assert isinstance(result.outcomes[0].error, FilesystemError)

    @pytest.mark.asyncio
    async def test_longest_allowed_name(self, source_dir, cache_dir):
        name = "x" * MAX_NAME_LENGTH
        source = source_dir / "fixture.bin"
        source.write_bytes(CONTENT)

        result = await ensure([declare(name, CONTENT, source.as_uri())], cache_dir)

        assert result.ok
        assert (cache_dir / name).read_bytes() == CONTENT
        assert leftover_temp_files(cache_dir) == []

    def test_name_over_limit_rejected(self, source_dir):
        with pytest.raises(ValueError, match="longer than"):
            declare("x" * (MAX_NAME_LENGTH + 1), CONTENT, (source_dir / "f.bin").as_uri())

    @pytest.mark.asyncio
    async def test_restores_callers_log_context(self, source_dir, cache_dir):
        source = source_dir / "fixture.bin"
        source.write_bytes(CONTENT)
        asset = declare("fixture.bin", CONTENT, source.as_uri())
        set_log_context(run_id="outer", asset="outer.bin")

        try:
            await ensure([asset], cache_dir)
            # Unusable cache dir returns early
            await ensure([asset], source)

            assert get_log_context() == {"run_id": "outer", "asset": "outer.bin"}
        finally:
            clear_log_context()

    def test_ensure_sync(self, source_dir, cache_dir):
        source = source_dir / "fixture.bin"
        source.write_bytes(CONTENT)
        asset = declare("fixture.bin", CONTENT, source.as_uri())

        result = ensure_sync([asset], cache_dir)

        assert result.raise_for_errors().path_for("fixture.bin").read_bytes() == CONTENT

    def test_concurrent_threads_share_cache(self, source_dir, cache_dir):
        content = os.urandom(512 * 1024)
        source = source_dir / "big.bin"
        source.write_bytes(content)
        asset = declare("big.bin", content, source.as_uri())

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(
                pool.map(lambda _: ensure_sync([asset], cache_dir, chunk_size=4096), range(4))
            )

        assert all(r.ok for r in results)
        assert (cache_dir / "big.bin").read_bytes() == content
        assert leftover_temp_files(cache_dir) == []


class TestDeclarations:
    def asset(self, name="fixture.bin", content=CONTENT):
        return declare(name, content, f"https://example.test/{name}")

    def test_empty_list_rejected(self):
        with pytest.raises(ValueError, match="At least one asset"):
            unique_assets([])

    def test_identical_duplicates_collapse(self):
        assert unique_assets([self.asset(), self.asset()]) == [self.asset()]

    def test_conflicting_duplicates_rejected(self):
        with pytest.raises(ValueError, match="declared twice"):
            unique_assets([self.asset(), self.asset(content=b"different")])

    def test_non_asset_rejected(self):
        with pytest.raises(TypeError):
            unique_assets([self.asset(), "fixture.bin"])

    def test_single_asset_rejected(self):
        with pytest.raises(TypeError, match="single TestAsset"):
            unique_assets(self.asset())

    def test_keeps_order(self):
        names = ["c.bin", "a.bin", "b.bin"]
        assert [a.name for a in unique_assets([self.asset(n) for n in names])] == names

    @pytest.mark.asyncio
    async def test_ensure_rejects_empty_list(self, cache_dir):
        with pytest.raises(ValueError):
            await ensure([], cache_dir)

    @pytest.mark.asyncio
    async def test_identical_duplicates_fetched_once(self, asset_server, cache_dir):
        asset = declare("fixture.bin", CONTENT, asset_server.add("fixture.bin", CONTENT))

        result = await ensure([asset, asset], cache_dir)

        assert len(result.outcomes) == 1
        assert asset_server.hits["fixture.bin"] == 1
