"""
Shared fixtures for fixture_assets tests.

Provides a local aiohttp server that serves asset bodies in small delayed
chunks (so concurrent readers get a chance to observe partial writes) and
counts requests per asset.
"""

import asyncio
from collections import Counter
from pathlib import Path
from typing import Dict, Optional

import pytest
import pytest_asyncio
from aiohttp import test_utils, web


class AssetServer:
    """In-process HTTP source for test assets."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.hits: Counter = Counter()
        self.chunk_size = 1024
        self.chunk_delay = 0.0
        self.server: Optional[test_utils.TestServer] = None

    def add(self, name: str, content: bytes) -> str:
        """Serve content under /assets/<name>; returns its URL."""
        self.files[name] = content
        return self.url(f"/assets/{name}")

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/assets/{name}", self.serve_asset)
        app.router.add_get("/redirect/{name}", self.redirect)
        app.router.add_get("/status/{code}", self.status)
        return app

    async def serve_asset(self, request: web.Request) -> web.StreamResponse:
        name = request.match_info["name"]
        self.hits[name] += 1
        if name not in self.files:
            raise web.HTTPNotFound()

        content = self.files[name]
        response = web.StreamResponse()
        response.content_type = "application/octet-stream"
        response.content_length = len(content)
        await response.prepare(request)
        for i in range(0, len(content), self.chunk_size):
            await response.write(content[i : i + self.chunk_size])
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
        await response.write_eof()
        return response

    async def redirect(self, request: web.Request) -> web.Response:
        raise web.HTTPFound(f"/assets/{request.match_info['name']}")

    async def status(self, request: web.Request) -> web.Response:
        return web.Response(status=int(request.match_info["code"]))


@pytest_asyncio.fixture
async def asset_server():
    """Running AssetServer, closed after the test."""
    assets = AssetServer()
    server = test_utils.TestServer(assets.make_app())
    await server.start_server()
    assets.server = server
    yield assets
    await server.close()


@pytest.fixture
def cache_dir(tmp_path) -> Path:
    """Cache directory path (not created; the materializer creates it)."""
    return tmp_path / "cache"


@pytest.fixture
def source_dir(tmp_path) -> Path:
    """Directory for file:// sources."""
    path = tmp_path / "sources"
    path.mkdir()
    return path
