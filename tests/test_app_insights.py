"""Tests for the direct Application Insights ingestion check."""

from __future__ import annotations

import asyncio

import pytest

from services.app_insights import send_direct_test_message, summarize_ingestion
from services.http import HttpResponse

CONNECTION_STRING = (
    "InstrumentationKey=1234;"
    "IngestionEndpoint=https://ingest.example.com/;"
    "LiveEndpoint=https://live.example.com/"
)


@pytest.fixture
def resolved(monkeypatch) -> list[str]:
    hosts: list[str] = []

    async def fake_resolve(hostname: str) -> None:
        hosts.append(hostname)

    monkeypatch.setattr("services.app_insights.resolve_host", fake_resolve)
    return hosts


def test_missing_connection_string() -> None:
    """An empty connection string is rejected."""

    with pytest.raises(ValueError, match="No connection string"):
        asyncio.run(send_direct_test_message(""))


def test_missing_instrumentation_key() -> None:
    """A connection string without an instrumentation key is rejected."""

    with pytest.raises(ValueError, match="No instrumentation key configured"):
        asyncio.run(send_direct_test_message("IngestionEndpoint=https://ingest.example.com/"))


def test_missing_ingestion_endpoint() -> None:
    """A connection string without an ingestion endpoint is rejected."""

    with pytest.raises(ValueError, match="No ingestion endpoint configured"):
        asyncio.run(send_direct_test_message("InstrumentationKey=1234"))


def test_posts_message_and_resolves_both_hosts(monkeypatch, resolved) -> None:
    """Both hosts are resolved before the test message is posted."""

    posted: list[dict] = []

    def transport(method, url, *, body=None, headers=None, timeout_s=30.0):
        posted.append({"url": url, "body": body})
        return HttpResponse(method, url, 200, {"itemsReceived": 1, "itemsAccepted": 1, "errors": []})

    monkeypatch.setattr("services.app_insights.request_json", transport)

    data = asyncio.run(send_direct_test_message(CONNECTION_STRING))

    assert summarize_ingestion(data) == "Item accepted with no errors"
    assert resolved == ["ingest.example.com", "live.example.com"]
    assert posted[0]["url"] == "https://ingest.example.com/v2/track"
    assert posted[0]["body"]["iKey"] == "1234"
    assert posted[0]["body"]["data"]["baseType"] == "MessageData"


def test_rejected_ingestion_is_reported(monkeypatch, resolved) -> None:
    """A rejected post surfaces the ingestion error."""

    monkeypatch.setattr(
        "services.app_insights.request_json",
        lambda method, url, **kwargs: HttpResponse(method, url, 400, {}),
    )

    with pytest.raises(ConnectionError, match="Failed to fetch ingestion endpoint: 400"):
        asyncio.run(send_direct_test_message(CONNECTION_STRING))


def test_unresolvable_host(monkeypatch) -> None:
    """DNS failures are reported with the host name."""

    async def fail(hostname: str) -> None:
        raise OSError("Name or service not known")

    monkeypatch.setattr("services.app_insights.resolve_host", fail)

    with pytest.raises(ConnectionError, match=r"Error resolving ingestion endpoint \(ingest.example.com\)"):
        asyncio.run(send_direct_test_message(CONNECTION_STRING))


def test_missing_live_endpoint(monkeypatch, resolved) -> None:
    """A connection string without a live endpoint is rejected."""

    monkeypatch.setattr(
        "services.app_insights.request_json",
        lambda method, url, **kwargs: HttpResponse(method, url, 200, {"itemsReceived": 1}),
    )

    with pytest.raises(ValueError, match="No live endpoint configured"):
        asyncio.run(
            send_direct_test_message("InstrumentationKey=1;IngestionEndpoint=https://ingest.example.com/")
        )


def test_summarize_partial_acceptance_as_json() -> None:
    """Partially accepted ingestion is summarised as JSON."""

    summary = summarize_ingestion({"itemsReceived": 1, "itemsAccepted": 0, "errors": [{"index": 0}]})

    assert summary == '{"itemsReceived": 1, "itemsAccepted": 0, "errors": [{"index": 0}]}'
