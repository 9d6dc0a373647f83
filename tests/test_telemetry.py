"""Tests for the injected telemetry client."""

from __future__ import annotations

import asyncio

from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode
import pytest

from core import telemetry as telemetry_module
from core.telemetry import (
    NullTelemetryClient,
    TelemetryClient,
    build_telemetry_client,
    parse_connection_string,
    track_dependency_call,
    track_duration_metric,
)

CONNECTION_STRING = "InstrumentationKey=abc-123;IngestionEndpoint=https://ingest.example.com"


class _RecordingLogExporter:
    def __init__(self) -> None:
        self.records: list = []

    def export(self, batch) -> None:
        self.records.extend(batch)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True

    def shutdown(self) -> None:
        return None


def _client() -> tuple[TelemetryClient, InMemorySpanExporter, _RecordingLogExporter, InMemoryMetricReader]:
    spans = InMemorySpanExporter()
    logs = _RecordingLogExporter()
    metrics = InMemoryMetricReader()
    client = TelemetryClient(CONNECTION_STRING, span_exporter=spans, log_exporter=logs, metric_reader=metrics)
    return client, spans, logs, metrics


def test_parse_connection_string_keeps_equals_in_values() -> None:
    """Values may themselves contain equals signs."""

    parsed = parse_connection_string("InstrumentationKey=k;Authorization=a=b;;")

    assert parsed == {"InstrumentationKey": "k", "Authorization": "a=b"}


def test_null_client_records_nothing() -> None:
    """The disabled sink reports that nothing was recorded."""

    client = NullTelemetryClient()

    assert client.enabled is False
    assert client.track_trace("hello") is False
    assert client.track_metric("m", 1.0) is False
    assert client.flush() is None


def test_client_requires_instrumentation_key() -> None:
    """A connection string without an instrumentation key is rejected."""

    with pytest.raises(ValueError):
        TelemetryClient("IngestionEndpoint=https://ingest.example.com/")


def test_traces_and_exceptions_are_exported_on_flush() -> None:
    """Traces and exceptions are exported as log records when flushed."""

    client, _spans, logs, _metrics = _client()

    assert client.track_trace("hello", properties={"run": 1}) is True
    assert client.track_exception(ValueError("bad")) is True
    client.flush()

    assert len(logs.records) == 2
    client.shutdown()


def test_flush_raises_when_export_does_not_finish(monkeypatch) -> None:
    """A flush that does not complete is reported as an error."""

    client, _spans, _logs, _metrics = _client()
    monkeypatch.setattr(client._logger_provider, "force_flush", lambda *args, **kwargs: False)

    with pytest.raises(RuntimeError, match="did not complete for logs"):
        client.flush()
    client.shutdown()


def test_track_dependency_call_records_success() -> None:
    """Successful calls become client spans carrying their properties."""

    client, spans, _logs, _metrics = _client()

    async def call() -> list[int]:
        return [1, 2, 3]

    result = asyncio.run(
        track_dependency_call(client, "AzCogSearch", "search", "idx / search", "host", call, {"k": 3})
    )
    client.flush()

    assert result == [1, 2, 3]
    (span,) = spans.get_finished_spans()
    assert span.name == "search"
    assert span.kind is SpanKind.CLIENT
    assert span.status.status_code is not StatusCode.ERROR
    assert span.attributes["dependency.type"] == "AzCogSearch"
    assert span.attributes["dependency.result_code"] == "200"
    assert span.attributes["peer.service"] == "host"
    assert span.attributes["k"] == "3"
    assert span.attributes["resultCount"] == "3"
    client.shutdown()


def test_track_dependency_call_records_failure() -> None:
    """Failed calls are recorded with an error status and re-raised."""

    client, spans, _logs, _metrics = _client()

    async def call() -> None:
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        asyncio.run(track_dependency_call(client, "AzOpenAI", "chat", "data", None, call))
    client.flush()

    (span,) = spans.get_finished_spans()
    assert span.status.status_code is StatusCode.ERROR
    assert span.attributes["dependency.result_code"] == "500"
    assert "peer.service" not in span.attributes
    client.shutdown()


def test_track_duration_metric() -> None:
    """Elapsed time is recorded as a histogram under the metric name."""

    client, _spans, _logs, metrics = _client()

    async def call() -> str:
        return "done"

    assert asyncio.run(track_duration_metric(client, "probe.duration", call)) == "done"

    data = metrics.get_metrics_data()
    recorded = [
        metric
        for resource_metrics in data.resource_metrics
        for scope_metrics in resource_metrics.scope_metrics
        for metric in scope_metrics.metrics
    ]
    assert [metric.name for metric in recorded] == ["probe.duration"]
    assert recorded[0].data.data_points[0].count == 1
    client.shutdown()


def test_build_telemetry_client_falls_back_to_null() -> None:
    """Missing or invalid connection strings give the disabled sink."""

    assert isinstance(build_telemetry_client(None), NullTelemetryClient)
    assert type(build_telemetry_client("Foo=bar")) is NullTelemetryClient


def test_build_telemetry_client_sends_configuration_trace(monkeypatch) -> None:
    """A configured client announces itself with one trace."""

    traces: list[str] = []

    class _Client(NullTelemetryClient):
        enabled = True

        def __init__(self, connection_string: str) -> None:
            self.connection_string = connection_string

        def track_trace(self, message, properties=None, severity=None) -> bool:
            traces.append(message)
            return True

    monkeypatch.setattr(telemetry_module, "TelemetryClient", _Client)

    client = build_telemetry_client(CONNECTION_STRING)

    assert isinstance(client, _Client)
    assert client.connection_string == CONNECTION_STRING
    assert traces == ["Application Insights configuration complete (via trace)"]
