"""
file:// sources, for local mirrors and offline test runs.
"""

from pathlib import Path
from typing import AsyncIterator
from urllib.parse import urlparse
from urllib.request import url2pathname

import aiofiles

from fixture_assets.download.http_client import write_chunks
from fixture_assets.download.models import FetchResult
from fixture_assets.errors import ErrorCategory, FetchError
from fixture_assets.hashing import DEFAULT_ALGORITHM, DEFAULT_CHUNK_SIZE


def file_url_to_path(url: str) -> Path:
    """
    Convert a file:// URL to a local path.

    Raises:
        FetchError: URL names a remote host
    """
    parsed = urlparse(url)
    if parsed.netloc not in ("", "localhost"):
        raise FetchError(
            f"Remote host in file URL is not supported: {parsed.netloc}",
            url=url,
            category=ErrorCategory.PERMANENT,
        )
    return Path(url2pathname(parsed.path))


async def _read_chunks(path: Path, url: str, chunk_size: int) -> AsyncIterator[bytes]:
    try:
        async with aiofiles.open(path, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                yield chunk
    except OSError as e:
        raise FetchError(
            f"Cannot read source file {path}",
            url=url,
            cause=e,
        ) from e


async def fetch_file(
    url: str,
    output_path: Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    algorithm: str = DEFAULT_ALGORITHM,
) -> FetchResult:
    """
    Copy a file:// source into output_path while hashing it.

    Raises:
        FetchError: Source file missing or unreadable
        FilesystemError: Output file can't be written
    """
    source_path = file_url_to_path(url)
    if not source_path.is_file():
        raise FetchError(
            f"Source file not found: {source_path}",
            url=url,
            category=ErrorCategory.PERMANENT,
        )

    written, digest = await write_chunks(
        _read_chunks(source_path, url, chunk_size), output_path, algorithm
    )
    return FetchResult(bytes_written=written, digest=digest)
