"""UI widgets for the Conversation Recall TUI."""

from typing import Optional

from rich.text import Text
from textual.app import ComposeResult
from textual.widgets import ListItem, Static

from ..models import SearchResult
from ..search import format_location, format_percent
from ..sources import get_source


def truncate(text: str, max_len: int = 100) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def source_style(source_name: str) -> tuple[str, str]:
    """Icon and color registered for a source tag."""
    source = get_source(source_name)
    if source is None:
        return "?", "white"
    return source.icon, source.color or "white"


def build_result_text(result: SearchResult, width: int = 100) -> Text:
    """One-line summary of a result: date, source, score, project, snippet."""
    exchange = result.exchange
    icon, color = source_style(result.source)

    text = Text()
    text.append(exchange.timestamp, style="cyan")
    text.append(" │ ", style="dim")
    text.append(f"{icon} ", style=color)
    if result.similarity is not None:
        text.append(f"{format_percent(result.similarity):3d}%", style="yellow")
    else:
        text.append("   -", style="dim")
    text.append(" │ ", style="dim")
    text.append(f"{truncate(exchange.project, 20)} ", style="bold")

    used = len(text.plain)
    description = (result.summary or result.snippet).replace("\n", " ").strip()
    desc_style = "bold white" if result.summary else "dim white"
    text.append(truncate(description, max(10, width - used - 2)), style=desc_style)
    return text


class ResultItem(ListItem):
    """List item for one search result."""

    def __init__(self, result: SearchResult):
        super().__init__()
        self.result = result
        self._static: Optional[Static] = None

    def compose(self) -> ComposeResult:
        self._static = Static(build_result_text(self.result, 100))
        yield self._static

    def on_resize(self, event) -> None:
        """Update text when resized."""
        if self._static:
            self._static.update(build_result_text(self.result, self.size.width))


def build_detail_text(result: SearchResult) -> Text:
    """Full exchange with its provenance, boxed like a transcript."""
    exchange = result.exchange
    source = get_source(result.source)

    text = Text()
    text.append("━━━ Conversation ━━━\n", style="bold cyan")
    text.append("\n")

    text.append("Source: ", style="bold")
    display_name = source.display_name if source else result.source
    icon = source.icon if source else "?"
    text.append(f"{icon} {display_name}\n", style="cyan bold")
    text.append("Project: ", style="bold")
    text.append(f"{exchange.project}\n")
    text.append("Date: ", style="bold")
    text.append(f"{exchange.timestamp}\n")
    if result.similarity is not None:
        text.append("Match: ", style="bold")
        text.append(f"{format_percent(result.similarity)}%\n", style="yellow")
    text.append("Location: ", style="bold")
    text.append(f"{format_location(result)}\n", style="dim")
    text.append("\n")

    if result.summary:
        text.append("Summary: ", style="bold")
        text.append(f"{result.summary}\n\n")

    for label, body, color in (
        ("User", exchange.user_message, "green"),
        ("Assistant", exchange.assistant_message, "magenta"),
    ):
        header = f"┌─ {label} "
        text.append(header, style=f"bold {color}")
        text.append("─" * max(1, 40 - len(header)), style=color)
        text.append("\n")
        if body:
            shown = body[:4000]
            for line in shown.split("\n"):
                text.append("│ ", style=color)
                text.append(f"{line}\n")
            if len(body) > 4000:
                text.append("│ ", style=color)
                text.append("... (truncated)\n", style="dim")
        else:
            text.append("│ ", style=color)
            text.append("(empty)\n", style="dim")
        text.append("└" + "─" * 40 + "\n\n", style=color)

    return text


class ExchangeDetailPanel(Static):
    """Right-hand panel showing the highlighted exchange."""

    def show_result(self, result: SearchResult) -> None:
        self.update(build_detail_text(result))

    def clear_display(self) -> None:
        self.update(Text("Select a result to view the conversation", style="dim"))
