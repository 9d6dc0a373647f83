"""Application Insights telemetry sink.

The client is built once at process start (see ``build_telemetry_client``)
and handed to whatever needs to emit telemetry. Nothing looks it up from a
global. ``NullTelemetryClient`` accepts every call and reports that nothing
was recorded, so callers never need to check for configuration.

``TelemetryClient`` owns its own OpenTelemetry providers (traces, logs and
metrics) wired to the Azure Monitor exporters. Dependencies become client
spans, traces and exceptions become log records, metrics are histograms.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from enum import IntEnum
import logging
import time
from typing import Any, TypeVar

from azure.monitor.opentelemetry.exporter import (
    AzureMonitorLogExporter,
    AzureMonitorMetricExporter,
    AzureMonitorTraceExporter,
)
from opentelemetry.metrics import Histogram
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.trace import SpanKind, Status, StatusCode

from core.logging import logger as LOGGER

T = TypeVar("T")


class SeverityLevel(IntEnum):
    VERBOSE = 0
    INFORMATION = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4


_LOG_LEVELS = {
    SeverityLevel.VERBOSE: logging.DEBUG,
    SeverityLevel.INFORMATION: logging.INFO,
    SeverityLevel.WARNING: logging.WARNING,
    SeverityLevel.ERROR: logging.ERROR,
    SeverityLevel.CRITICAL: logging.CRITICAL,
}


def parse_connection_string(connection_string: str | None) -> dict[str, str]:
    """Split ``Key=Value;Key=Value`` into a dict. Values may contain ``=``."""

    parsed: dict[str, str] = {}
    for part in (connection_string or "").split(";"):
        if not part.strip() or "=" not in part:
            continue
        key, value = part.split("=", 1)
        parsed[key.strip()] = value.strip()
    return parsed


def _string_props(properties: Mapping[str, Any] | None) -> dict[str, str]:
    return {str(k): str(v) for k, v in (properties or {}).items() if v is not None}


class NullTelemetryClient:
    """Telemetry sink used when Application Insights is not configured."""

    enabled = False

    def track_trace(
        self,
        message: str,
        properties: Mapping[str, Any] | None = None,
        severity: SeverityLevel = SeverityLevel.INFORMATION,
    ) -> bool:
        return False

    def track_exception(self, exception: BaseException, properties: Mapping[str, Any] | None = None) -> bool:
        return False

    def track_metric(self, name: str, value: float) -> bool:
        return False

    def track_dependency(
        self,
        *,
        dependency_type_name: str,
        name: str,
        data: str,
        target: str | None,
        duration_ms: float,
        result_code: int,
        success: bool,
        properties: Mapping[str, Any] | None = None,
    ) -> bool:
        return False

    def flush(self) -> None:
        return None

    def shutdown(self) -> None:
        return None


class TelemetryClient(NullTelemetryClient):
    """Sends telemetry to Application Insights through OpenTelemetry providers.

    The exporters default to Azure Monitor for ``connection_string``; pass
    others to keep telemetry in process.
    """

    enabled = True

    def __init__(
        self,
        connection_string: str,
        *,
        role_name: str = "azdiag",
        span_exporter: SpanExporter | None = None,
        log_exporter: Any = None,
        metric_reader: MetricReader | None = None,
    ) -> None:
        if not parse_connection_string(connection_string).get("InstrumentationKey"):
            raise ValueError("Connection string has no InstrumentationKey")

        resource = Resource.create({SERVICE_NAME: role_name})
        if span_exporter is None:
            span_exporter = AzureMonitorTraceExporter(connection_string=connection_string)
        if log_exporter is None:
            log_exporter = AzureMonitorLogExporter(connection_string=connection_string)
        if metric_reader is None:
            metric_reader = PeriodicExportingMetricReader(
                AzureMonitorMetricExporter(connection_string=connection_string)
            )

        self._tracer_provider = TracerProvider(resource=resource)
        self._tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
        self._logger_provider = LoggerProvider(resource=resource)
        self._logger_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
        self._meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])

        self._tracer = self._tracer_provider.get_tracer(__name__)
        self._meter = self._meter_provider.get_meter(__name__)
        self._histograms: dict[str, Histogram] = {}
        # Detached from the logging tree so records only reach Application Insights.
        self._logger = logging.Logger("azdiag.telemetry")
        self._logger.addHandler(LoggingHandler(logger_provider=self._logger_provider))

    def track_trace(
        self,
        message: str,
        properties: Mapping[str, Any] | None = None,
        severity: SeverityLevel = SeverityLevel.INFORMATION,
    ) -> bool:
        self._logger.log(_LOG_LEVELS[SeverityLevel(severity)], message, extra=_string_props(properties))
        return True

    def track_exception(self, exception: BaseException, properties: Mapping[str, Any] | None = None) -> bool:
        self._logger.error(
            str(exception) or type(exception).__name__,
            exc_info=(type(exception), exception, exception.__traceback__),
            extra=_string_props(properties),
        )
        return True

    def track_metric(self, name: str, value: float) -> bool:
        histogram = self._histograms.get(name)
        if histogram is None:
            histogram = self._histograms[name] = self._meter.create_histogram(name)
        histogram.record(float(value))
        return True

    def track_dependency(
        self,
        *,
        dependency_type_name: str,
        name: str,
        data: str,
        target: str | None,
        duration_ms: float,
        result_code: int,
        success: bool,
        properties: Mapping[str, Any] | None = None,
    ) -> bool:
        end_ns = time.time_ns()
        attributes = {
            "dependency.type": dependency_type_name,
            "dependency.data": data,
            "dependency.result_code": str(result_code),
            **_string_props(properties),
        }
        if target:
            attributes["peer.service"] = target
        span = self._tracer.start_span(
            name,
            kind=SpanKind.CLIENT,
            start_time=end_ns - int(duration_ms * 1_000_000),
            attributes=attributes,
        )
        if not success:
            span.set_status(Status(StatusCode.ERROR))
        span.end(end_time=end_ns)
        return True

    def flush(self) -> None:
        """Export everything recorded so far. Raises when an export does not finish."""

        flushed = {
            "traces": self._tracer_provider.force_flush(),
            "logs": self._logger_provider.force_flush(),
            "metrics": self._meter_provider.force_flush(),
        }
        unfinished = [signal for signal, done in flushed.items() if not done]
        if unfinished:
            raise RuntimeError(f"Telemetry export did not complete for {', '.join(unfinished)}")
        LOGGER.debug("Telemetry flushed")

    def shutdown(self) -> None:
        self._tracer_provider.shutdown()
        self._logger_provider.shutdown()
        self._meter_provider.shutdown()


def build_telemetry_client(connection_string: str | None) -> NullTelemetryClient:
    """Create the process-wide telemetry client, or a no-op one."""

    if not connection_string:
        LOGGER.warning(
            "No Application Insights connection string found - please set "
            "APPLICATIONINSIGHTS_CONNECTION_STRING."
        )
        return NullTelemetryClient()
    try:
        client = TelemetryClient(connection_string)
    except ValueError as exc:
        LOGGER.error("Error configuring Application Insights: %s", exc)
        return NullTelemetryClient()
    client.track_trace("Application Insights configuration complete (via trace)")
    LOGGER.info("Application Insights configuration complete")
    return client


async def track_dependency_call(
    telemetry: NullTelemetryClient,
    dependency_type_name: str,
    name: str,
    data: str,
    target: str | None,
    call: Callable[[], Awaitable[T]],
    props: Mapping[str, Any] | None = None,
    get_extra_props: Callable[[T], Mapping[str, Any] | None] | None = None,
) -> T:
    """Await ``call`` and record it as a dependency, whether or not it succeeds."""

    start = time.monotonic()
    success = False
    final_props: dict[str, Any] = dict(props or {})
    try:
        result = await call()
        if isinstance(result, list):
            final_props["resultCount"] = len(result)
        if get_extra_props is not None:
            final_props.update(get_extra_props(result) or {})
        success = True
        return result
    finally:
        telemetry.track_dependency(
            dependency_type_name=dependency_type_name,
            name=name,
            data=data,
            target=target,
            duration_ms=(time.monotonic() - start) * 1000,
            result_code=200 if success else 500,
            success=success,
            properties=final_props,
        )


async def track_duration_metric(
    telemetry: NullTelemetryClient,
    name: str,
    call: Callable[[], Awaitable[T]],
) -> T:
    start = time.monotonic()
    try:
        return await call()
    finally:
        telemetry.track_metric(name, (time.monotonic() - start) * 1000)


async def flush_async(telemetry: NullTelemetryClient) -> None:
    await asyncio.to_thread(telemetry.flush)
