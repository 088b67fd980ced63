from __future__ import annotations

from typing import Mapping

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import ListItem, Static
from textual.reactive import reactive
from rich.text import Text

from .datamodels import Article, StreamName, StreamState

EXTRACT_PREVIEW_CHARS = 280


# --- UI Widgets ---
class CardItem(ListItem):
    def __init__(self, article: Article, compact: bool = False):
        super().__init__()
        self.article = article
        self.compact = compact

    def compose(self) -> ComposeResult:
        with Vertical(classes="card"):
            yield Static(Text(self.article.title, style="bold"), classes="card-title")
            if not self.compact and self.article.extract:
                yield Static(_preview(self.article.extract), classes="card-extract")


def _preview(extract: str) -> str:
    if len(extract) <= EXTRACT_PREVIEW_CHARS:
        return extract
    return extract[:EXTRACT_PREVIEW_CHARS].rsplit(" ", 1)[0] + "..."


def stream_summary(
    states: Mapping[StreamName, StreamState], counts: Mapping[StreamName, int]
) -> str:
    """One segment per stream: its card count, or a loading marker."""
    parts = []
    for name in StreamName:
        if states.get(name) is StreamState.LOADING:
            parts.append(f"{name.value}: loading...")
        else:
            parts.append(f"{name.value}: {counts.get(name, 0)}")
    return "  ".join(parts)


class StatusBar(Static):
    streams = reactive("")
    keybinding_hint = reactive("")

    def on_mount(self) -> None:
        self.refresh_text()

    def set_keybindings(self, hint: str) -> None:
        self.keybinding_hint = hint

    def show_streams(
        self,
        states: Mapping[StreamName, StreamState],
        counts: Mapping[StreamName, int],
    ) -> None:
        self.streams = stream_summary(states, counts)

    def refresh_text(self) -> None:
        self.update(" | ".join(p for p in (self.streams, self.keybinding_hint) if p))

    def watch_streams(self, streams: str) -> None:
        self.refresh_text()

    def watch_keybinding_hint(self, keybinding_hint: str) -> None:
        self.refresh_text()
