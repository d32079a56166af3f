"""
Scheme dispatch: fetch any supported source URL into a local file.
"""

from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from fixture_assets.download.http_client import (
    DEFAULT_TIMEOUT_SECONDS,
    create_session,
    fetch_http,
)
from fixture_assets.download.local import fetch_file
from fixture_assets.download.models import FetchResult
from fixture_assets.errors import ErrorCategory, FetchError
from fixture_assets.hashing import DEFAULT_ALGORITHM, DEFAULT_CHUNK_SIZE

HTTP_SCHEMES = ("http", "https")


def needs_session(url: str) -> bool:
    """Whether fetching url requires an HTTP session."""
    return urlparse(url).scheme.lower() in HTTP_SCHEMES


async def fetch_to_file(
    url: str,
    output_path: Path,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    algorithm: str = DEFAULT_ALGORITHM,
) -> FetchResult:
    """
    Stream a source into output_path, hashing as it goes.

    Args:
        url: Source URL (http, https or file)
        output_path: File to write
        session: aiohttp session for http(s) sources
            (None = create one for this call)
        timeout: Total request timeout in seconds (http only)
        chunk_size: Streaming chunk size
        algorithm: Hash algorithm for the returned digest

    Returns:
        FetchResult

    Raises:
        FetchError: Source unreachable, non-success response,
            or unsupported scheme
        FilesystemError: Output file can't be written

    Example:
        result = await fetch_to_file(
            "https://example.test/fixture.bin",
            Path("/tmp/fixture.bin.part"),
        )
        print(result.bytes_written, result.digest)
    """
    scheme = urlparse(url).scheme.lower()

    if scheme == "file":
        return await fetch_file(
            url, output_path, chunk_size=chunk_size, algorithm=algorithm
        )

    if scheme not in HTTP_SCHEMES:
        raise FetchError(
            f"Unsupported source scheme: {scheme or '<none>'}",
            url=url,
            category=ErrorCategory.PERMANENT,
        )

    if session is not None:
        return await fetch_http(
            url,
            output_path,
            session,
            timeout=timeout,
            chunk_size=chunk_size,
            algorithm=algorithm,
        )

    async with create_session() as own_session:
        return await fetch_http(
            url,
            output_path,
            own_session,
            timeout=timeout,
            chunk_size=chunk_size,
            algorithm=algorithm,
        )
