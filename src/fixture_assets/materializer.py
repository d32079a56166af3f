"""
Asset materializer: make declared test assets present and verified in a cache directory.

For each declared asset, in order:
1. Hash the file at ``cache_dir/name`` if there is one; a match is a cache hit
2. Otherwise fetch the source into a temp file in cache_dir, hashing as it streams
3. Reject the temp file on hash mismatch (IntegrityError)
4. Atomically rename the verified temp file onto ``cache_dir/name``

A failure for one asset is recorded in the EnsureResult and doesn't stop the
others. One fetch attempt per asset per call; callers may call again.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

import aiohttp

from fixture_assets.cache import CacheDirectory
from fixture_assets.download import create_session, fetch_to_file, needs_session
from fixture_assets.download.http_client import DEFAULT_TIMEOUT_SECONDS
from fixture_assets.errors import AssetError, FilesystemError, IntegrityError
from fixture_assets.hashing import DEFAULT_CHUNK_SIZE
from fixture_assets.logging.context import get_log_context, set_log_context
from fixture_assets.logging.setup import generate_run_id
from fixture_assets.logging.utilities import LoggedClass, extract_log_context
from fixture_assets.models import AssetOutcome, EnsureResult, TestAsset

SessionProvider = Callable[[], Awaitable[aiohttp.ClientSession]]


def _elapsed_ms(start: datetime) -> float:
    return round((datetime.now(timezone.utc) - start).total_seconds() * 1000, 2)


def unique_assets(assets: Iterable[TestAsset]) -> List[TestAsset]:
    """
    Validate a declaration list and drop identical duplicates, keeping order.

    Raises:
        TypeError: An element isn't a TestAsset
        ValueError: Empty list, or one name declared with different sources/hashes
    """
    if isinstance(assets, TestAsset):
        raise TypeError("Expected a sequence of TestAsset, got a single TestAsset")

    by_name: Dict[str, TestAsset] = {}
    for asset in assets:
        if not isinstance(asset, TestAsset):
            raise TypeError(f"Expected TestAsset, got {type(asset).__name__}")
        prior = by_name.get(asset.name)
        if prior is None:
            by_name[asset.name] = asset
        elif prior != asset:
            raise ValueError(
                f"Asset '{asset.name}' is declared twice with different sources or hashes"
            )

    if not by_name:
        raise ValueError("At least one asset must be declared")
    return list(by_name.values())


class AssetMaterializer(LoggedClass):
    """
    Ensures declared assets exist in a cache directory with matching hashes.

    Usage:
        materializer = AssetMaterializer(Path(".fixture-assets"))
        result = await materializer.ensure([
            TestAsset(
                name="fixture.bin",
                source="https://example.test/fixture.bin",
                expected_hash="sha256:...",
            ),
        ])
        result.raise_for_errors()
        data = result.path_for("fixture.bin").read_bytes()

    Session management:
        By default an HTTP session is created lazily on the first http(s)
        fetch of an ensure() call and closed when the call returns, so calls
        that are all cache hits never open a connection. Pass a session to
        share one across calls; it is then never closed here.
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_connections: int = 10,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize AssetMaterializer.

        Args:
            cache_dir: Cache directory (created on first use)
            session: Optional aiohttp session (None = one per ensure() call)
            timeout_seconds: Total timeout per fetch
            chunk_size: Streaming and hashing chunk size in bytes
            max_connections: Connection pool size for owned sessions
            verify_ssl: Verify TLS certificates for owned sessions
            user_agent: User-Agent for owned sessions
        """
        self.cache_dir = Path(cache_dir)
        self.cache = CacheDirectory(self.cache_dir, chunk_size=chunk_size)
        self.timeout_seconds = timeout_seconds
        self.chunk_size = chunk_size
        self._session = session
        self._max_connections = max_connections
        self._verify_ssl = verify_ssl
        self._user_agent = user_agent
        super().__init__()

    async def ensure(self, assets: Iterable[TestAsset]) -> EnsureResult:
        """
        Make every asset present and verified under cache_dir.

        Args:
            assets: Non-empty sequence of asset declarations

        Returns:
            EnsureResult with one outcome per distinct asset, in declaration order

        Raises:
            TypeError, ValueError: Invalid declaration list (see unique_assets)
        """
        declared = unique_assets(assets)
        previous_context = get_log_context()
        set_log_context(run_id=generate_run_id())
        try:
            return await self._ensure(declared)
        finally:
            set_log_context(**previous_context)

    async def _ensure(self, declared: List[TestAsset]) -> EnsureResult:
        start = datetime.now(timezone.utc)
        result = EnsureResult()

        self._log(
            logging.DEBUG,
            "Materializing assets",
            assets_total=len(declared),
        )

        try:
            self.cache.ensure_exists()
        except FilesystemError as e:
            self._log_exception(e, "Cache directory unavailable", include_traceback=False)
            for asset in declared:
                error = FilesystemError(e.message, name=asset.name, cause=e.cause)
                result.outcomes.append(AssetOutcome.failed(asset, error))
            return result

        owned: List[aiohttp.ClientSession] = []

        async def get_session() -> aiohttp.ClientSession:
            if self._session is not None:
                return self._session
            if not owned:
                owned.append(
                    create_session(
                        max_connections=self._max_connections,
                        verify_ssl=self._verify_ssl,
                        user_agent=self._user_agent,
                    )
                )
            return owned[0]

        try:
            for asset in declared:
                outcome = await self._materialize(asset, get_session)
                result.outcomes.append(outcome)
        finally:
            for session in owned:
                await session.close()

        level = logging.INFO if result.ok else logging.WARNING
        self._log(
            level,
            "Assets materialized" if result.ok else "Some assets could not be materialized",
            assets_total=len(result.outcomes),
            assets_cached=len(result.cached),
            assets_downloaded=len(result.downloaded),
            assets_failed=len(result.failed),
            duration_ms=_elapsed_ms(start),
        )
        return result

    async def _materialize(
        self, asset: TestAsset, get_session: SessionProvider
    ) -> AssetOutcome:
        """Run the check/fetch/verify/place sequence for one asset."""
        set_log_context(asset=asset.name)
        log_ctx = extract_log_context(asset)
        start = datetime.now(timezone.utc)
        temp_path: Optional[Path] = None

        try:
            existing = await self.cache.lookup(asset)
            target = self.cache.path_for(asset.name)

            if existing is not None and existing.matches(asset.expected_hash):
                self._log(logging.DEBUG, "Cache hit", **log_ctx)
                return AssetOutcome.cached(asset, target, duration_ms=_elapsed_ms(start))

            if existing is not None:
                self._log(
                    logging.INFO,
                    "Cached file does not match declared hash, re-fetching",
                    actual_hash=str(existing),
                    **log_ctx,
                )

            session = await get_session() if needs_session(asset.source) else None
            temp_path = self.cache.temp_path_for(asset.name)

            fetched = await fetch_to_file(
                asset.source,
                temp_path,
                session=session,
                timeout=self.timeout_seconds,
                chunk_size=self.chunk_size,
                algorithm=asset.expected_hash.algorithm,
            )

            if not fetched.digest.matches(asset.expected_hash):
                raise IntegrityError(asset.name, asset.expected_hash, fetched.digest)

            self.cache.place(temp_path, asset.name)
            temp_path = None

            duration_ms = _elapsed_ms(start)
            self._log(
                logging.INFO,
                "Asset downloaded",
                bytes_downloaded=fetched.bytes_written,
                http_status=fetched.status_code,
                duration_ms=duration_ms,
                **log_ctx,
            )
            return AssetOutcome.downloaded(
                asset, target, fetched.bytes_written, duration_ms=duration_ms
            )

        except AssetError as e:
            if e.name is None:
                e.name = asset.name
            self._log_exception(
                e,
                "Asset could not be materialized",
                level=logging.WARNING,
                include_traceback=False,
                http_status=getattr(e, "status_code", None),
                actual_hash=str(e.actual) if isinstance(e, IntegrityError) else None,
                **log_ctx,
            )
            await self._drop_stale(asset)
            return AssetOutcome.failed(
                asset,
                e,
                actual_hash=e.actual if isinstance(e, IntegrityError) else None,
                duration_ms=_elapsed_ms(start),
            )

        except Exception as e:
            self._log_exception(e, "Unexpected error materializing asset", **log_ctx)
            await self._drop_stale(asset)
            return AssetOutcome.failed(
                asset,
                AssetError(f"Unexpected error: {e}", name=asset.name, cause=e),
                duration_ms=_elapsed_ms(start),
            )

        finally:
            self.cache.discard(temp_path)

    async def _drop_stale(self, asset: TestAsset) -> None:
        """After a failure, don't leave a mismatching file at the target path."""
        try:
            await self.cache.invalidate(asset)
        except FilesystemError as e:
            self._log_exception(
                e,
                "Could not remove stale cache entry",
                level=logging.WARNING,
                include_traceback=False,
                asset_name=asset.name,
            )


async def ensure(
    assets: Iterable[TestAsset],
    cache_dir: Union[str, Path],
    **options,
) -> EnsureResult:
    """
    Materialize assets into cache_dir.

    Args:
        assets: Non-empty sequence of asset declarations
        cache_dir: Cache directory
        **options: AssetMaterializer keyword arguments

    Returns:
        EnsureResult (call raise_for_errors() to fail loudly)
    """
    return await AssetMaterializer(cache_dir, **options).ensure(assets)


def ensure_sync(
    assets: Iterable[TestAsset],
    cache_dir: Union[str, Path],
    **options,
) -> EnsureResult:
    """
    Blocking variant of ensure() for synchronous test code.

    Runs its own event loop, so it can't be called from inside a running
    loop; async callers should await ensure() instead.
    """
    return asyncio.run(ensure(assets, cache_dir, **options))
