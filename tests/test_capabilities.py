"""Tests for the capability object handed to sources."""

import logging

import httpx
import pytest

from sourcekit.core.capabilities import SourceAPI
from sourcekit.core.errors import CapabilityUnsupportedError


def test_emit_keeps_ordered_batches(api):
    api.emit([{"id": "1"}])
    api.emit(item for item in [{"id": "2"}, {"id": "3"}])

    assert api.emitted == [[{"id": "1"}], [{"id": "2"}, {"id": "3"}]]
    assert api.emit_count == 2
    assert api.batches_since(1) == [[{"id": "2"}, {"id": "3"}]]
    assert api.batches_since(2) == []


@pytest.mark.parametrize("value", [None, 5, {"id": "1"}, "abc"])
def test_emit_non_list_is_single_item_batch(api, value):
    assert api.emit(value) is None
    assert api.emitted == [[value]]


def test_emit_failing_iterable_records_empty_batch(api):
    def items():
        yield {"id": "1"}
        raise RuntimeError("generator broke")

    api.emit(items())
    assert api.emitted == [[]]


def test_storage_round_trip(api):
    assert api.storage.get("missing") is None
    api.storage.set("cursor", {"page": 2})
    assert api.storage.get("cursor") == {"page": 2}


def test_config_views(api):
    assert api.config.get("TAG") == "python"
    assert api.config.get("NOPE") is None

    everything = api.config.get_all()
    everything["TAG"] = "changed"
    assert api.config.get("TAG") == "python"
    assert api.config.getAll() == {"TAG": "python", "LIMIT": 10}


def test_websocket_is_unsupported(api):
    with pytest.raises(CapabilityUnsupportedError, match="not supported"):
        api.websocket.connect("wss://example.com", {})


def test_app_version(api):
    assert api.app_version == "99.0.0"
    assert api.appVersion == "99.0.0"


def test_log_accepts_any_level(api, caplog):
    with caplog.at_level(logging.DEBUG, logger="sourcekit.source"):
        assert api.log("warn", "careful") is None
        api.log("shout", "unknown level")

    records = [r for r in caplog.records if r.name == "sourcekit.source"]
    assert [(r.levelno, r.getMessage()) for r in records] == [
        (logging.WARNING, "careful"),
        (logging.INFO, "unknown level"),
    ]
    assert records[1].source_level == "shout"


async def test_fetch_json(api):
    response = await api.fetch("https://api.test/json")
    assert response.ok is True
    assert response.status == 200
    assert response.json == {"items": [1, 2, 3]}
    assert response.headers["x-test"] == "yes"
    assert response.error is None


async def test_fetch_non_json_body(api):
    response = await api.fetch("https://api.test/text")
    assert response.ok is True
    assert response.text == "plain body"
    assert response.json is None


async def test_fetch_non_2xx(api):
    response = await api.fetch("https://api.test/missing")
    assert response.ok is False
    assert response.status == 404
    assert response.text == "not found"


async def test_fetch_options(api):
    response = await api.fetch(
        "https://api.test/echo",
        {"method": "POST", "headers": {"Authorization": "Bearer t"}, "body": "payload"},
    )
    assert response.status == 201
    assert response.json == {"method": "POST", "body": "payload", "auth": "Bearer t"}


async def test_fetch_transport_error_is_normalized(api):
    response = await api.fetch("https://api.test/broken")
    assert response.ok is False
    assert response.status == 0
    assert response.headers == {}
    assert response.text == ""
    assert "connection reset" in response.error


async def test_fetch_timeout_is_normalized():
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as client:
        api = SourceAPI({}, client=client)
        response = await api.fetch("https://api.test/slow", {"timeout": 5})
    assert response.ok is False
    assert response.status == 0
    assert response.error == "timed out"


async def test_aclose_leaves_injected_client_open(api, http_client):
    await api.aclose()
    assert not http_client.is_closed


async def test_aclose_closes_own_client():
    api = SourceAPI({})
    client = api._get_client()
    await api.aclose()
    assert client.is_closed


async def test_fetch_zero_timeout_is_passed_through():
    seen = []

    def record(request):
        seen.append(request.extensions["timeout"]["read"])
        return httpx.Response(200, text="ok")

    async with httpx.AsyncClient(transport=httpx.MockTransport(record)) as client:
        api = SourceAPI({}, client=client, fetch_timeout_ms=1000)
        await api.fetch("https://api.test/zero", {"timeout": 0})
        await api.fetch("https://api.test/default")

    assert seen == [0, 1.0]
