"""
Flat on-disk cache of materialized assets.

Layout: one file per asset at ``<root>/<name>``. In-flight downloads live in
hidden ``.<name>.<random>.part`` files in the same directory so that placing
them is a single atomic ``os.replace``; a reader of ``<root>/<name>`` sees
either no file, the previous file, or the complete new one.
"""

import asyncio
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from fixture_assets.errors import FilesystemError
from fixture_assets.hashing import DEFAULT_CHUNK_SIZE, Digest, hash_file
from fixture_assets.logging.utilities import LoggedClass
from fixture_assets.models import TestAsset
from fixture_assets.security import PART_SUFFIX, TEMP_PREFIX, validate_asset_name

# Mode for placed cache files; mkstemp creates 0600
CACHE_FILE_MODE = 0o644


class CacheDirectory(LoggedClass):
    """
    Cache directory holding one verified file per asset name.

    Usage:
        cache = CacheDirectory(tmp_path / "assets")
        cache.ensure_exists()
        if await cache.lookup(asset) != asset.expected_hash:
            temp = cache.temp_path_for(asset.name)
            ...  # write and verify temp
            cache.place(temp, asset.name)
    """

    def __init__(
        self,
        root: Union[str, Path],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.root = Path(root)
        self.chunk_size = chunk_size
        super().__init__()

    def ensure_exists(self) -> Path:
        """
        Create the cache directory (and parents) if missing.

        Raises:
            FilesystemError: Directory can't be created, or the path is a file
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Cannot create cache directory {self.root}", cause=e
            ) from e
        return self.root

    def path_for(self, name: str) -> Path:
        """
        Target path of an asset.

        Raises:
            ValueError: Name isn't a valid flat file name
        """
        is_valid, error = validate_asset_name(name)
        if not is_valid:
            raise ValueError(error)
        return self.root / name

    async def lookup(self, asset: TestAsset) -> Optional[Digest]:
        """
        Digest of the cached file in the asset's hash algorithm.

        Returns:
            Digest, or None when nothing is cached under the asset's name

        Raises:
            FilesystemError: Path exists but isn't a readable regular file
        """
        path = self.path_for(asset.name)
        try:
            st = await asyncio.to_thread(os.stat, path)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FilesystemError(
                f"Cannot stat cached file {path}", name=asset.name, cause=e
            ) from e

        if not stat.S_ISREG(st.st_mode):
            raise FilesystemError(
                f"Cache path {path} exists but is not a regular file",
                name=asset.name,
            )

        try:
            return await hash_file(
                path, asset.expected_hash.algorithm, chunk_size=self.chunk_size
            )
        except FileNotFoundError:
            # Removed by another process between stat and open
            return None
        except OSError as e:
            raise FilesystemError(
                f"Cannot read cached file {path}", name=asset.name, cause=e
            ) from e

    def temp_path_for(self, name: str) -> Path:
        """
        Create a fresh, empty temp file next to the asset's target path.

        Each call returns a distinct path, so concurrent writers never share one.

        Raises:
            FilesystemError: Temp file can't be created
        """
        self.path_for(name)
        try:
            fd, path_str = tempfile.mkstemp(
                prefix=f"{TEMP_PREFIX}{name}.",
                suffix=PART_SUFFIX,
                dir=self.root,
            )
        except OSError as e:
            raise FilesystemError(
                f"Cannot create temp file in {self.root}", name=name, cause=e
            ) from e
        os.close(fd)
        return Path(path_str)

    def place(self, temp_path: Path, name: str) -> Path:
        """
        Atomically move a verified temp file onto the asset's target path.

        Replaces any existing file at the target.

        Raises:
            FilesystemError: Rename failed
        """
        target = self.path_for(name)
        try:
            os.chmod(temp_path, CACHE_FILE_MODE)
            os.replace(temp_path, target)
        except OSError as e:
            raise FilesystemError(
                f"Cannot move {temp_path.name} into place at {target}",
                name=name,
                cause=e,
            ) from e
        return target

    def discard(self, temp_path: Optional[Path]) -> None:
        """Remove a temp file; a missing file is fine."""
        if temp_path is None:
            return
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self._log_exception(
                e,
                "Failed to remove temp file",
                level=logging.WARNING,
                include_traceback=False,
            )

    async def invalidate(self, asset: TestAsset) -> bool:
        """
        Remove the cached file if it doesn't match the asset's declared hash.

        A file that matches (e.g. placed meanwhile by a concurrent process)
        is left alone.

        Returns:
            True if a stale file was removed

        Raises:
            FilesystemError: Stale file exists but can't be removed
        """
        digest = await self.lookup(asset)
        if digest is None or digest.matches(asset.expected_hash):
            return False

        path = self.path_for(asset.name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FilesystemError(
                f"Cannot remove stale cached file {path}", name=asset.name, cause=e
            ) from e

        self._log(
            logging.INFO,
            "Removed stale cache entry",
            asset_name=asset.name,
            expected_hash=str(asset.expected_hash),
            actual_hash=str(digest),
        )
        return True

    def entries(self) -> List[str]:
        """Names of cached files, sorted; in-flight temp files excluded."""
        if not self.root.is_dir():
            return []
        return sorted(
            p.name
            for p in self.root.iterdir()
            if p.is_file() and not p.name.startswith(TEMP_PREFIX)
        )
