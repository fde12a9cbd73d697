"""Common test fixtures and configuration."""

import json
import logging
import os
import textwrap
from pathlib import Path

import httpx
import pytest
import yaml

from sourcekit.core.capabilities import SourceAPI
from sourcekit.utils.settings import HarnessSettings

# Keep harness logging quiet unless a test asks for it
os.environ.setdefault("LOG_LEVEL", "WARNING")

BASE_MANIFEST = {
    "version": "1.0.0",
    "name": "Test Source",
    "description": "Source used by the test suite",
    "author": "tester",
    "category": "Developer",
}


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration after each test."""
    yield
    root = logging.getLogger()
    root.handlers = []
    root.setLevel(logging.WARNING)
    logging.getLogger("sourcekit.source").setLevel(logging.NOTSET)


@pytest.fixture
def settings():
    """Harness settings with a short phase timeout."""
    return HarnessSettings(phase_timeout_ms=200, fetch_timeout_ms=1000)


def _handle_request(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/json":
        return httpx.Response(200, json={"items": [1, 2, 3]}, headers={"X-Test": "yes"})
    if request.url.path == "/text":
        return httpx.Response(200, text="plain body")
    if request.url.path == "/echo":
        return httpx.Response(
            201,
            json={
                "method": request.method,
                "body": request.content.decode(),
                "auth": request.headers.get("authorization"),
            },
        )
    if request.url.path == "/broken":
        raise httpx.ConnectError("connection reset", request=request)
    return httpx.Response(404, text="not found")


@pytest.fixture
def http_client():
    """HTTP client backed by an in-process mock transport."""
    return httpx.AsyncClient(transport=httpx.MockTransport(_handle_request))


@pytest.fixture
def api(http_client):
    return SourceAPI({"TAG": "python", "LIMIT": 10}, client=http_client)


@pytest.fixture
def make_source(tmp_path):
    """Write a source directory with the given manifest config and script."""

    def _make(script: str, config: list[dict] | None = None, **manifest_fields) -> Path:
        root = tmp_path / "source"
        (root / "src").mkdir(parents=True, exist_ok=True)
        manifest = {**BASE_MANIFEST, **manifest_fields}
        if config is not None:
            manifest["config"] = config
        (root / "manifest.yaml").write_text(yaml.safe_dump(manifest), encoding="utf-8")
        (root / "src" / "index.py").write_text(textwrap.dedent(script), encoding="utf-8")
        return root

    return _make


def make_items(count: int, prefix: str = "item") -> list[dict]:
    return [
        {"id": f"{prefix}-{i}", "title": f"Title {i}", "url": f"https://example.com/{i}"}
        for i in range(count)
    ]


def items_literal(count: int, prefix: str = "item") -> str:
    """Python literal for ``make_items`` output, for embedding in scripts."""
    return json.dumps(make_items(count, prefix))
