"""Command-line entry point for running diagnostics."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Callable
from pathlib import Path

from config import AzureSettings, ConfigController
from core.logging import (
    enable_file_logging,
    log_error,
    log_info,
    log_probe_result,
    log_warning,
    logger,
    set_level,
)
from core.telemetry import NullTelemetryClient, build_telemetry_client
from diagnostics.client import run_client_diagnostics
from diagnostics.models import DiagnosticStatus
from diagnostics.render import DiagnosticsPage
from diagnostics.server import ServerServices, build_server_services, run_server_diagnostics

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_PROVISIONING_FAILED = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(description="Run Azure service diagnostics.")
    parser.add_argument("--build-id", type=str, default=None, help="Build id shown under the heading.")
    parser.add_argument("--json", action="store_true", help="Print results as JSON instead of cards.")
    parser.add_argument("--expand-all", action="store_true", help="Show full content on every card.")
    parser.add_argument("--no-client", action="store_true", help="Skip the client-side probes.")
    return parser.parse_args(argv)


class PagePrinter:
    """Prints the page once, then only the cards appended after that."""

    def __init__(self, expand_all: bool = False, write: Callable[[str], None] = print) -> None:
        self._printed = 0
        self._expand_all = expand_all
        self._write = write

    def __call__(self, page: DiagnosticsPage) -> None:
        if self._expand_all:
            page.expand_all()
        if self._printed == 0:
            self._write(page.render())
        else:
            for card in page.cards[self._printed:]:
                self._write("\n".join(card.render_lines()))
        self._printed = len(page.cards)


async def load_page(
    services: ServerServices,
    build_id: str | None = None,
    content_limit: int = 50,
    timeout_s: float | None = None,
    include_client: bool = True,
    on_update: Callable[[DiagnosticsPage], None] | None = None,
) -> DiagnosticsPage:
    """Render server results as soon as they exist, then append client results.

    Provisioning errors propagate to the caller.
    """

    results = await run_server_diagnostics(services, timeout_s=timeout_s)
    page = DiagnosticsPage(results, build_id=build_id, content_limit=content_limit)
    if on_update is not None:
        on_update(page)
    if include_client:
        await page.load_client_results(
            lambda: run_client_diagnostics(timeout_s=timeout_s),
            on_update,
        )
    return page


def main(argv: list[str] | None = None) -> int:
    """Run diagnostics and return an exit code."""

    args = parse_args(argv)
    config = ConfigController.get_instance().get_config()
    set_level(config.get("logging_level", "INFO"))
    if config.get("file_logging_enabled"):
        enable_file_logging(Path(config["log_file"]))

    settings = AzureSettings.from_environment(config)
    telemetry: NullTelemetryClient = build_telemetry_client(settings.app_insights_connection_string)
    services = build_server_services(settings, telemetry)

    printer = None if args.json else PagePrinter(expand_all=args.expand_all)
    try:
        page = asyncio.run(
            load_page(
                services,
                build_id=args.build_id or settings.build_id,
                content_limit=settings.content_limit,
                timeout_s=settings.probe_timeout_s,
                include_client=not args.no_client,
                on_update=printer,
            )
        )
    except Exception as exc:
        logger.exception("Diagnostics could not run: %s", exc)
        log_error(f"Provisioning failed: {exc}")
        return EXIT_PROVISIONING_FAILED
    finally:
        try:
            telemetry.flush()
        except Exception as exc:  # noqa: BLE001
            log_warning(f"Telemetry flush failed: {exc}")
        telemetry.shutdown()

    for result in page.results:
        ok = result.status is DiagnosticStatus.SUCCESS
        log_probe_result(result.name, ok, result.result if ok else result.error_message)

    failed = sum(1 for result in page.results if result.status is DiagnosticStatus.FAILURE)
    log_info(f"Diagnostics finished: {len(page.results) - failed} passed, {failed} failed")

    if args.json:
        print(json.dumps([result.to_dict() for result in page.results], indent=2))

    return EXIT_FAILURES if page.has_failures() else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
