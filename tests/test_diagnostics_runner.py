"""Tests for the probe runner and aggregator."""

from __future__ import annotations

import asyncio

from diagnostics.models import DiagnosticFailure, DiagnosticStatus, DiagnosticSuccess
from diagnostics.runner import Probe, run_diagnostics, run_probe


def _delayed(value: str, delay_s: float, finished: list[str]):
    async def get_data() -> str:
        await asyncio.sleep(delay_s)
        finished.append(value)
        return value

    return get_data


def test_run_probe_success_uses_build_result() -> None:
    """A successful probe reports the projected result string."""

    async def get_data() -> list[int]:
        return [1, 2, 3]

    result = asyncio.run(run_probe(Probe("Counter", get_data, lambda data: f"Found {len(data)}")))

    assert result == DiagnosticSuccess(name="Counter", result="Found 3")


def test_run_probe_failure_from_get_data() -> None:
    """An error from the external call becomes a failure result."""

    async def get_data() -> None:
        raise RuntimeError("boom")

    result = asyncio.run(run_probe(Probe("Exploder", get_data, lambda _: "unused")))

    assert isinstance(result, DiagnosticFailure)
    assert result.name == "Exploder"
    assert result.error_message == "boom"
    assert result.error_string == "RuntimeError: boom"


def test_run_probe_failure_from_build_result() -> None:
    """An error from the projection also becomes a failure result."""

    async def get_data() -> dict:
        return {}

    result = asyncio.run(run_probe(Probe("Projection", get_data, lambda data: data["missing"])))

    assert result.status is DiagnosticStatus.FAILURE
    assert result.error_message == "'missing'"


def test_run_probe_without_message_defaults() -> None:
    """An error without a message falls back to the unknown-error text."""

    async def get_data() -> None:
        raise ValueError()

    result = asyncio.run(run_probe(Probe("Silent", get_data, lambda _: "unused")))

    assert result.error_message == "Unknown error"


def test_run_probe_accepts_synchronous_get_data() -> None:
    """Plain return values are accepted as well as awaitables."""

    result = asyncio.run(run_probe(Probe("Sync", lambda: 41, lambda n: str(n + 1))))

    assert result == DiagnosticSuccess(name="Sync", result="42")


def test_run_probe_timeout_becomes_failure() -> None:
    """A probe exceeding the deadline fails with the timeout message."""

    async def get_data() -> None:
        await asyncio.sleep(5)

    result = asyncio.run(run_probe(Probe("Hung", get_data, lambda _: "unused"), timeout_s=0.01))

    assert result.status is DiagnosticStatus.FAILURE
    assert result.error_message == "Hung timed out after 0.01s"
    assert result.error_string == "TimeoutError: Hung timed out after 0.01s"


def test_timeout_error_raised_by_the_call_keeps_its_message() -> None:
    """A read timeout inside the call keeps its own message under a deadline."""

    async def get_data() -> None:
        raise TimeoutError("The read operation timed out")

    result = asyncio.run(run_probe(Probe("Open AI", get_data, lambda _: "unused"), timeout_s=60))

    assert result.status is DiagnosticStatus.FAILURE
    assert result.error_message == "The read operation timed out"
    assert result.error_string == "TimeoutError: The read operation timed out"


def test_asyncio_timeout_raised_by_the_call_keeps_its_message() -> None:
    """An asyncio timeout from the call is not mistaken for the deadline."""

    async def get_data() -> None:
        raise asyncio.TimeoutError("upstream deadline")

    result = asyncio.run(run_probe(Probe("Search", get_data, lambda _: "unused"), timeout_s=60))

    assert result.error_message == "upstream deadline"


def test_deadline_expiry_does_not_affect_siblings() -> None:
    """Other entries finish with their own results when one times out."""

    finished: list[str] = []

    async def hang() -> None:
        await asyncio.sleep(5)

    probes = [
        Probe("before", _delayed("before", 0.0, finished), lambda v: f"{v} ok"),
        Probe("hung", hang, lambda _: "unused"),
        Probe("after", _delayed("after", 0.01, finished), lambda v: f"{v} ok"),
    ]

    results = asyncio.run(run_diagnostics(probes, timeout_s=0.2))

    assert results[0] == DiagnosticSuccess(name="before", result="before ok")
    assert results[1].status is DiagnosticStatus.FAILURE
    assert results[1].error_message == "hung timed out after 0.2s"
    assert results[2] == DiagnosticSuccess(name="after", result="after ok")
    assert sorted(finished) == ["after", "before"]


def test_run_diagnostics_preserves_declaration_order() -> None:
    """Results follow declaration order, not completion order."""

    finished: list[str] = []
    names = ["first", "second", "third", "fourth"]
    # Later probes finish sooner, so completion order is the reverse.
    probes = [
        Probe(name, _delayed(name, (len(names) - i) * 0.01, finished), lambda value: value)
        for i, name in enumerate(names)
    ]

    results = asyncio.run(run_diagnostics(probes))

    assert [r.name for r in results] == names
    assert [r.result for r in results] == names
    assert finished == list(reversed(names))


def test_run_diagnostics_isolates_failures() -> None:
    """One failing probe does not prevent the others from succeeding."""

    finished: list[str] = []

    async def explode() -> None:
        raise ConnectionError("refused")

    probes = [
        Probe("slow", _delayed("slow", 0.03, finished), lambda v: v),
        Probe("broken", explode, lambda _: "unused"),
        Probe("fast", _delayed("fast", 0.0, finished), lambda v: v),
    ]

    results = asyncio.run(run_diagnostics(probes))

    assert [r.status for r in results] == [
        DiagnosticStatus.SUCCESS,
        DiagnosticStatus.FAILURE,
        DiagnosticStatus.SUCCESS,
    ]
    assert sorted(finished) == ["fast", "slow"]


def test_run_diagnostics_runs_probes_concurrently() -> None:
    """Total time tracks the slowest probe rather than the sum."""

    finished: list[str] = []
    probes = [Probe(str(i), _delayed(str(i), 0.2, finished), lambda v: v) for i in range(5)]

    async def timed() -> float:
        loop = asyncio.get_running_loop()
        start = loop.time()
        await run_diagnostics(probes)
        return loop.time() - start

    assert asyncio.run(timed()) < 0.9


def test_run_diagnostics_with_no_probes() -> None:
    """An empty probe list yields an empty result list."""

    assert asyncio.run(run_diagnostics([])) == []
