"""Shared fixtures and fakes for the sd-provision test-suite.

Everything runs offline: HTTP goes either to a recording fake session or to a
local aiohttp TestServer.
"""

import logging
from pathlib import Path

import aiohttp
import pytest

from sd_provision.models.config import ProvisionConfig
from sd_provision.utils.log_file import AppendingFileHandler


# ---------------------------------------------------------------------------
# Fake aiohttp session
# ---------------------------------------------------------------------------


class FakeContent:
    def __init__(self, body: bytes, error: Exception | None = None):
        self._body = body
        self._error = error

    async def iter_chunked(self, size: int):
        for i in range(0, len(self._body), size):
            yield self._body[i : i + size]
        if self._error is not None:
            raise self._error


class FakeResponse:
    def __init__(self, status: int = 200, body: bytes = b"", error: Exception | None = None):
        self.status = status
        self._body = body
        self.headers = {"Content-Length": str(len(body))}
        self.content = FakeContent(body, error)

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientError(f"HTTP {self.status}")

    async def read(self) -> bytes:
        return self._body

    async def text(self) -> str:
        return self._body.decode("utf-8")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FailingRequest:
    def __init__(self, error: Exception):
        self._error = error

    async def __aenter__(self):
        raise self._error

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Serves canned responses per URL and records every request."""

    def __init__(self, routes: dict | None = None):
        self.routes = routes or {}
        self.calls: list[tuple[str, dict]] = []

    def get(self, url, headers=None, allow_redirects=True):
        self.calls.append((url, dict(headers or {})))
        route = self.routes.get(url)
        if route is None:
            return _FailingRequest(aiohttp.ClientConnectionError(f"cannot connect to {url}"))
        if isinstance(route, Exception):
            return _FailingRequest(route)
        return route


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def make_config(tmp_path: Path):
    """Builds a ProvisionConfig rooted in tmp_path."""

    def _make(**overrides) -> ProvisionConfig:
        settings = {
            "workspace": str(tmp_path / "workspace"),
            "work_dir": str(tmp_path / "work"),
        }
        settings.update(overrides)
        return ProvisionConfig(**settings)

    return _make


@pytest.fixture(autouse=True)
def _detach_log_files():
    yield
    logger = logging.getLogger("sd_provision")
    for handler in list(logger.handlers):
        if isinstance(handler, AppendingFileHandler):
            logger.removeHandler(handler)
