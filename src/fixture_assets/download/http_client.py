"""
HTTP(S) fetching with aiohttp.

Streams response bodies to disk in chunks so memory stays bounded for
large fixtures.
"""

import asyncio
from pathlib import Path
from typing import AsyncIterator, Optional, Tuple

import aiofiles
import aiohttp

from fixture_assets import __version__
from fixture_assets.download.models import FetchResult
from fixture_assets.errors import ErrorCategory, FetchError, FilesystemError
from fixture_assets.hashing import DEFAULT_ALGORITHM, DEFAULT_CHUNK_SIZE, Digest, new_hasher
from fixture_assets.security import sanitize_error_message, sanitize_url

DEFAULT_TIMEOUT_SECONDS = 300
DEFAULT_USER_AGENT = f"fixture-assets/{__version__}"


def create_session(
    max_connections: int = 10,
    max_connections_per_host: int = 4,
    verify_ssl: bool = True,
    user_agent: Optional[str] = None,
) -> aiohttp.ClientSession:
    """
    Create an aiohttp session for asset downloads.

    Must be called from within a running event loop. The caller owns the
    session and must close it.

    Args:
        max_connections: Total connection pool size
        max_connections_per_host: Per-host connection limit
        verify_ssl: Verify TLS certificates (default: True)
        user_agent: User-Agent header (default: fixture-assets/<version>)
    """
    connector = aiohttp.TCPConnector(
        limit=max_connections,
        limit_per_host=max_connections_per_host,
        ssl=None if verify_ssl else False,
    )
    return aiohttp.ClientSession(
        connector=connector,
        headers={"User-Agent": user_agent or DEFAULT_USER_AGENT},
    )


async def write_chunks(
    chunks: AsyncIterator[bytes],
    output_path: Path,
    algorithm: str = DEFAULT_ALGORITHM,
) -> Tuple[int, Digest]:
    """
    Write chunks to output_path while hashing them.

    Returns:
        (bytes_written, digest)

    Raises:
        FilesystemError: Output file can't be written
        Whatever the chunk iterator raises, unchanged
    """
    hasher = new_hasher(algorithm)
    written = 0
    try:
        async with aiofiles.open(output_path, "wb") as f:
            async for chunk in chunks:
                hasher.update(chunk)
                await f.write(chunk)
                written += len(chunk)
    except (FetchError, aiohttp.ClientError, asyncio.TimeoutError):
        raise
    except OSError as e:
        raise FilesystemError(f"Cannot write {output_path}", cause=e) from e
    return written, Digest(algorithm, hasher.hexdigest())


async def fetch_http(
    url: str,
    output_path: Path,
    session: aiohttp.ClientSession,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    algorithm: str = DEFAULT_ALGORITHM,
) -> FetchResult:
    """
    GET url and stream the body into output_path.

    Redirects are followed (release download links usually redirect to a CDN).

    Args:
        url: http or https URL
        output_path: File to write (truncated first)
        session: aiohttp session
        timeout: Total request timeout in seconds
        chunk_size: Read size for streaming
        algorithm: Hash algorithm for the returned digest

    Returns:
        FetchResult

    Raises:
        FetchError: Non-2xx response, connection failure or timeout
        FilesystemError: Output file can't be written
    """
    try:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=True,
        ) as response:
            if not 200 <= response.status < 300:
                raise FetchError(
                    f"HTTP {response.status} from {sanitize_url(url)}",
                    url=url,
                    status_code=response.status,
                )

            written, digest = await write_chunks(
                response.content.iter_chunked(chunk_size), output_path, algorithm
            )
            return FetchResult(
                bytes_written=written,
                digest=digest,
                status_code=response.status,
                content_type=response.content_type,
            )

    except asyncio.TimeoutError as e:
        raise FetchError(
            f"Timed out after {timeout}s fetching {sanitize_url(url)}",
            url=url,
            category=ErrorCategory.TRANSIENT,
            cause=e,
        ) from e
    except aiohttp.ClientError as e:
        raise FetchError(
            f"Connection error fetching {sanitize_url(url)}: "
            f"{sanitize_error_message(str(e))}",
            url=url,
            category=ErrorCategory.TRANSIENT,
            cause=e,
        ) from e
