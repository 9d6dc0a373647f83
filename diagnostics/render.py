"""Card-style presentation of diagnostic results."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable

from diagnostics.models import DiagnosticResult, DiagnosticStatus

# Only a few characters of each message are shown at first so the whole
# overview fits on screen.
INITIAL_CONTENT_LIMIT = 50
ELLIPSIS = "..."
SHOW_MORE_LABEL = "Show more"
PAGE_HEADING = "Diagnostics"


class ResultCard:
    """Display state for one diagnostic result."""

    def __init__(self, result: DiagnosticResult, content_limit: int = INITIAL_CONTENT_LIMIT) -> None:
        self.result = result
        self.content_limit = content_limit
        self.expanded = False

    @property
    def title(self) -> str:
        return self.result.name

    @property
    def is_success(self) -> bool:
        return self.result.status is DiagnosticStatus.SUCCESS

    @property
    def headline(self) -> str:
        if self.is_success:
            return "SUCCESS"
        error_string = self.result.error_string or ""
        error_message = self.result.error_message or ""
        if error_message in error_string:
            return "FAILURE"
        return error_message

    @property
    def content(self) -> str:
        if self.is_success:
            return self.result.result or ""
        return self.result.error_string or ""

    @property
    def show_more(self) -> bool:
        return not self.expanded and len(self.content) > self.content_limit

    @property
    def display_content(self) -> str:
        content = self.content
        if self.expanded or len(content) <= self.content_limit:
            return content
        return content[: self.content_limit] + ELLIPSIS

    def expand(self) -> None:
        """Reveal the full content. There is no way back."""

        self.expanded = True

    def render_lines(self) -> list[str]:
        marker = "+" if self.is_success else "!"
        lines = [f"[{marker}] {self.title}", f"    {self.headline}"]
        if self.display_content:
            lines.append(f"    {self.display_content}")
        if self.show_more:
            lines.append(f"    [{SHOW_MORE_LABEL}]")
        return lines


class DiagnosticsPage:
    """Ordered list of result cards: server results first, client results appended."""

    def __init__(
        self,
        results: Iterable[DiagnosticResult] = (),
        build_id: str | None = None,
        content_limit: int = INITIAL_CONTENT_LIMIT,
    ) -> None:
        self.build_id = build_id
        self.content_limit = content_limit
        self.cards: list[ResultCard] = [ResultCard(r, content_limit) for r in results]

    @property
    def results(self) -> list[DiagnosticResult]:
        return [card.result for card in self.cards]

    def append_results(self, results: Iterable[DiagnosticResult]) -> None:
        self.cards.extend(ResultCard(r, self.content_limit) for r in results)

    async def load_client_results(
        self,
        run_client: Callable[[], Awaitable[list[DiagnosticResult]]],
        on_update: Callable[["DiagnosticsPage"], None] | None = None,
    ) -> None:
        """Append client-side results once they resolve."""

        results = await run_client()
        self.append_results(results)
        if on_update is not None:
            on_update(self)

    def expand_all(self) -> None:
        for card in self.cards:
            card.expand()

    def has_failures(self) -> bool:
        return any(not card.is_success for card in self.cards)

    def render_lines(self) -> list[str]:
        lines = [PAGE_HEADING, "=" * len(PAGE_HEADING)]
        if self.build_id:
            lines.append(f"Build Id: {self.build_id}")
        for card in self.cards:
            lines.extend(card.render_lines())
        return lines

    def render(self) -> str:
        return "\n".join(self.render_lines())
