"""Models for diagnostics results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class DiagnosticStatus(str, Enum):
    """Status for diagnostics checks."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class DiagnosticSuccess:
    """Successful outcome of a single probe."""

    name: str
    result: str

    @property
    def status(self) -> DiagnosticStatus:
        return DiagnosticStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "status": self.status.value, "result": self.result}


@dataclass(frozen=True)
class DiagnosticFailure:
    """Failed outcome of a single probe.

    ``error_message`` is the short summary; ``error_string`` is the full
    stringified error used for the expandable detail view.
    """

    name: str
    error_message: str
    error_string: str

    @property
    def status(self) -> DiagnosticStatus:
        return DiagnosticStatus.FAILURE

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "errorMessage": self.error_message,
            "errorString": self.error_string,
        }


DiagnosticResult = Union[DiagnosticSuccess, DiagnosticFailure]
