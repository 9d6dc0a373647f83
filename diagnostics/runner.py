"""Diagnostics runner utilities."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from core.logging import logger as LOGGER
from diagnostics.errors import normalize_error
from diagnostics.models import DiagnosticFailure, DiagnosticResult, DiagnosticSuccess


@dataclass(frozen=True)
class Probe:
    """A named diagnostic check wrapping one external call."""

    name: str
    get_data: Callable[[], Awaitable[Any] | Any]
    build_result: Callable[[Any], str]


def success(name: str, result: str) -> DiagnosticSuccess:
    return DiagnosticSuccess(name=name, result=result)


def failure(name: str, error: Any) -> DiagnosticFailure:
    error_message, error_string = normalize_error(error)
    return DiagnosticFailure(name=name, error_message=error_message, error_string=error_string)


async def _collect(probe: Probe) -> str:
    data = probe.get_data()
    if inspect.isawaitable(data):
        data = await data
    return probe.build_result(data)


async def _collect_within(probe: Probe, timeout_s: float) -> str:
    """Collect the probe result, failing only when this deadline expires.

    A ``TimeoutError`` raised by the call itself propagates unchanged.
    """

    task = asyncio.create_task(_collect(probe))
    try:
        done, _pending = await asyncio.wait({task}, timeout=timeout_s)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if not done:
        task.cancel()
        raise TimeoutError(f"{probe.name} timed out after {timeout_s:g}s")
    return task.result()


async def run_probe(probe: Probe, timeout_s: float | None = None) -> DiagnosticResult:
    """Run a single probe and reduce its outcome to a diagnostic result.

    Never raises for ordinary exceptions; those become failure results.
    """

    LOGGER.debug("Probe started: %s", probe.name)
    try:
        if timeout_s is None:
            result = await _collect(probe)
        else:
            result = await _collect_within(probe, timeout_s)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Probe failed: %s: %s", probe.name, exc)
        return failure(probe.name, exc)
    LOGGER.debug("Probe succeeded: %s", probe.name)
    return success(probe.name, result)


async def run_diagnostics(
    probes: Sequence[Probe],
    timeout_s: float | None = None,
) -> list[DiagnosticResult]:
    """Run all probes concurrently and return results in declaration order."""

    if not probes:
        return []
    results = await asyncio.gather(*(run_probe(probe, timeout_s=timeout_s) for probe in probes))
    return list(results)
