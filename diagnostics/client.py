"""Client-side probes: safe to run without any secrets."""

from __future__ import annotations

from diagnostics.models import DiagnosticResult
from diagnostics.runner import Probe, run_diagnostics


async def _noop() -> None:
    return None


def build_client_probes() -> list[Probe]:
    return [
        Probe("Dummy", _noop, lambda _: "Dummy complete"),
    ]


async def run_client_diagnostics(
    probes: list[Probe] | None = None,
    timeout_s: float | None = None,
) -> list[DiagnosticResult]:
    if probes is None:
        probes = build_client_probes()
    return await run_diagnostics(probes, timeout_s=timeout_s)
