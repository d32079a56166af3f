"""
Source download module.

Streams asset sources into local files while hashing them:
    - http/https via aiohttp (redirects followed, bounded memory)
    - file:// via aiofiles (local mirrors, offline runs)

Clean interface: (url, output_path) -> FetchResult, raising FetchError or
FilesystemError on failure. Verification against the declared hash and
placement into the cache are the materializer's job.
"""

from fixture_assets.download.fetcher import fetch_to_file, needs_session
from fixture_assets.download.http_client import create_session
from fixture_assets.download.models import FetchResult

__all__ = ["FetchResult", "create_session", "fetch_to_file", "needs_session"]
