"""Diagnostics helpers for Azure service health checks."""

from diagnostics.models import (
    DiagnosticFailure,
    DiagnosticResult,
    DiagnosticStatus,
    DiagnosticSuccess,
)
from diagnostics.runner import Probe, run_diagnostics, run_probe

__all__ = [
    "DiagnosticFailure",
    "DiagnosticResult",
    "DiagnosticStatus",
    "DiagnosticSuccess",
    "Probe",
    "run_diagnostics",
    "run_probe",
]
