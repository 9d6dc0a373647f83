"""Command-line entry point for the Azure diagnostics page."""

from __future__ import annotations

import sys

from diagnostics.run import main as run_main


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]
    return run_main(argv)


if __name__ == "__main__":
    raise SystemExit(main())
