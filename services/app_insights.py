"""Direct check of the Application Insights ingestion endpoint.

Sends one message envelope straight to ``<IngestionEndpoint>v2/track``
without going through the telemetry client, so a misconfigured client
cannot hide a reachable endpoint (or the other way round).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import json
from typing import Any
from urllib.parse import urlparse

from core.telemetry import parse_connection_string
from services.http import request_json

TEST_MESSAGE = "direct diagnostics test message from server"


async def resolve_host(hostname: str) -> None:
    loop = asyncio.get_running_loop()
    await loop.getaddrinfo(hostname, None)


def _hostname(url: str) -> str:
    return urlparse(url).hostname or url


async def send_direct_test_message(connection_string: str | None) -> dict[str, Any]:
    """Resolve both endpoints and post one trace; return the ingestion reply."""

    if not connection_string:
        raise ValueError("No connection string")
    settings = parse_connection_string(connection_string)
    instrumentation_key = settings.get("InstrumentationKey")
    if not instrumentation_key:
        raise ValueError("No instrumentation key configured")
    ingestion_endpoint = settings.get("IngestionEndpoint")
    if not ingestion_endpoint:
        raise ValueError("No ingestion endpoint configured")

    ingest_host = _hostname(ingestion_endpoint)
    try:
        await resolve_host(ingest_host)
    except OSError as exc:
        raise ConnectionError(f"Error resolving ingestion endpoint ({ingest_host}): {exc}") from exc

    if not ingestion_endpoint.endswith("/"):
        ingestion_endpoint += "/"
    envelope = {
        "name": TEST_MESSAGE,
        "iKey": instrumentation_key,
        "time": datetime.now(timezone.utc).isoformat(),
        "data": {
            "baseType": "MessageData",
            "baseData": {"message": TEST_MESSAGE},
        },
    }
    try:
        response = await asyncio.to_thread(
            request_json, "POST", f"{ingestion_endpoint}v2/track", body=envelope
        )
        if not response.ok:
            raise ConnectionError(f"Failed to fetch ingestion endpoint: {response.status}")
    except OSError as exc:
        raise ConnectionError(f"Error fetching ingestion endpoint ({ingestion_endpoint}): {exc}") from exc
    ingest_data = response.body if isinstance(response.body, dict) else {}

    live_endpoint = settings.get("LiveEndpoint")
    if not live_endpoint:
        raise ValueError("No live endpoint configured")
    live_host = _hostname(live_endpoint)
    try:
        await resolve_host(live_host)
    except OSError as exc:
        raise ConnectionError(f"Error resolving live endpoint ({live_host}): {exc}") from exc
    return ingest_data


def summarize_ingestion(data: dict[str, Any]) -> str:
    if data.get("itemsAccepted") == 1 and data.get("itemsReceived") == 1 and not data.get("errors"):
        return "Item accepted with no errors"
    return json.dumps(data)
