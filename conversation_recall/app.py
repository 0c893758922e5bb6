"""Conversation Recall browser TUI application."""

import logging
from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, ScrollableContainer, Vertical
from textual.widgets import Footer, Header, Input, ListView, Static

from .config import RecallConfig
from .errors import ValidationError
from .models import SEARCH_MODES, SearchResult
from .search import search_conversations
from .ui import APP_CSS, ExchangeDetailPanel, ResultItem

logger = logging.getLogger(__name__)

RESULT_LIMIT = 50


class RecallBrowser(App):
    """TUI for searching past conversations across every source."""

    CSS = APP_CSS

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("slash", "activate_search", "Search"),
        Binding("m", "cycle_mode", "Mode"),
        Binding("tab", "switch_pane", "Tab: Panes", priority=True),
        Binding("escape", "back_to_list", "Back"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
    ]

    def __init__(
        self,
        config: Optional[RecallConfig] = None,
        initial_query: str = "",
        mode: str = "vector",
    ):
        super().__init__()
        self.config = config or RecallConfig()
        self.initial_query = initial_query
        self.mode = mode
        self.results: list[SearchResult] = []
        self._query = ""

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal():
            with Vertical(id="left-container"):
                yield Input(
                    value=self.initial_query,
                    placeholder="Search conversations... (Enter to search)",
                    id="search-input",
                )
                with Vertical(id="results-container"):
                    yield Static(self._header_markup(), id="results-header")
                    yield ListView(id="results-list")
            with ScrollableContainer(id="detail-container"):
                yield ExchangeDetailPanel(id="detail-panel")
        yield Footer()

    def on_mount(self):
        self.title = "Conversation Recall"
        self.query_one("#detail-panel", ExchangeDetailPanel).clear_display()
        if self.initial_query.strip():
            self._run_search(self.initial_query.strip())
        else:
            self.query_one("#search-input", Input).focus()

    def _header_markup(self, status: str = "") -> str:
        header = f"[bold]Results[/] [dim](mode: {self.mode})[/]"
        if status:
            header += f" {status}"
        return header

    def _set_header(self, status: str = ""):
        self.query_one("#results-header", Static).update(self._header_markup(status))

    def _run_search(self, query: str):
        self._query = query
        self._set_header(f"[yellow]Searching:[/] [white]{query}[/]")
        self._search_background(query, self.mode)

    @work(exclusive=True, thread=True)
    def _search_background(self, query: str, mode: str):
        try:
            results = search_conversations(
                query,
                mode=mode,
                limit=RESULT_LIMIT,
                config=self.config,
            )
        except ValidationError as e:
            self.call_from_thread(self.notify, str(e), severity="error")
            return
        self.call_from_thread(self._show_results, query, results)

    def _show_results(self, query: str, results: list[SearchResult]):
        self.results = results
        self._set_header(f"[yellow]Search:[/] [white]{query}[/] [dim]({len(results)} matches)[/]")

        results_list = self.query_one("#results-list", ListView)
        results_list.clear()
        results_list.mount(*[ResultItem(r) for r in results])

        detail = self.query_one("#detail-panel", ExchangeDetailPanel)
        if results:
            results_list.index = 0
            detail.show_result(results[0])
        else:
            detail.clear_display()
            self.notify("No results found.")
        results_list.focus()

    @on(Input.Submitted, "#search-input")
    def on_search_submitted(self, event: Input.Submitted):
        """Handle search input submission."""
        query = event.value.strip()
        if query:
            self._run_search(query)

    @on(ListView.Highlighted, "#results-list")
    def on_result_highlighted(self, event: ListView.Highlighted):
        if isinstance(event.item, ResultItem):
            self.query_one("#detail-panel", ExchangeDetailPanel).show_result(event.item.result)

    def action_activate_search(self):
        self.query_one("#search-input", Input).focus()

    def action_cycle_mode(self):
        """Switch between vector, text and combined retrieval."""
        index = SEARCH_MODES.index(self.mode)
        self.mode = SEARCH_MODES[(index + 1) % len(SEARCH_MODES)]
        if self._query:
            self._run_search(self._query)
        else:
            self._set_header()

    def action_switch_pane(self):
        if self.query_one("#results-list", ListView).has_focus:
            self.query_one("#detail-container", ScrollableContainer).focus()
        else:
            self.query_one("#results-list", ListView).focus()

    def action_back_to_list(self):
        self.query_one("#results-list", ListView).focus()

    def action_cursor_down(self):
        results_list = self.query_one("#results-list", ListView)
        if results_list.has_focus:
            results_list.action_cursor_down()

    def action_cursor_up(self):
        results_list = self.query_one("#results-list", ListView)
        if results_list.has_focus:
            results_list.action_cursor_up()
