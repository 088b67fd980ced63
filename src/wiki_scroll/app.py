from __future__ import annotations

import logging
import webbrowser
from typing import Any, Optional, Tuple

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Header, Input, ListView, Static

from .client import EncyclopediaClient
from .config import FeedConfig
from .continuation import ContinuationController
from .datamodels import Article, StreamName, StreamState
from .messages import FeedUpdated
from .preloader import ImagePreloader
from .store import FeedStore
from .widgets import CardItem, StatusBar

logger = logging.getLogger("wikiscroll")

KEYBINDINGS_HINT = "[b]/[/] search  [b]r[/] related  [b]o[/] open  [b]ctrl+r[/] reload  [b]q[/] quit"


class WikiScrollApp(App):
    TITLE = "WikiScroll"
    SUB_TITLE = "Random Wikipedia, one card at a time"

    CSS = """
    #cards { height: 1fr; }
    #related-pane { height: 12; display: none; border-top: solid $accent; }
    #related-pane.open { display: block; }
    .card { height: auto; padding: 0 1; }
    .card-extract { text-opacity: 70%; }
    .pane-title { text-style: bold; padding: 0 1; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "show_related", "Related"),
        Binding("escape", "dismiss_related", "Close related"),
        Binding("o", "open_in_browser", "Open in browser"),
        Binding("ctrl+r", "reload", "Reload"),
        Binding("/", "focus_search", "Search"),
    ]

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        store: Optional[FeedStore] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.feed_config = config or FeedConfig()
        self.store = store or FeedStore(
            EncyclopediaClient(self.feed_config), ImagePreloader(self.feed_config)
        )
        self.continuation = ContinuationController(self.store, dispatch=self._dispatch)
        self._rendered: Tuple[Article, ...] = ()
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Input(placeholder="Search articles...", id="search")
        yield ListView(id="cards")
        with Vertical(id="related-pane"):
            yield Static("Related Articles", classes="pane-title")
            yield ListView(id="related")
        yield StatusBar()

    def on_mount(self) -> None:
        self._unsubscribe = self.store.subscribe(self._on_store_change)
        self.query_one(StatusBar).set_keybindings(KEYBINDINGS_HINT)
        self.query_one("#cards", ListView).focus()
        self.run_worker(self.store.mount, name="main_loader", thread=True)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()

    def _dispatch(self, fn) -> None:
        self.run_worker(fn, name="main_loader", thread=True)

    def _on_store_change(
        self, stream: StreamName, state: StreamState, items: Tuple[Article, ...]
    ) -> None:
        # Called on worker threads; post_message is thread safe.
        self.post_message(FeedUpdated(stream, state, items))

    def on_feed_updated(self, message: FeedUpdated) -> None:
        self.query_one(StatusBar).show_streams(
            {name: self.store.state(name) for name in StreamName},
            {name: len(self.store.snapshot(name)) for name in StreamName},
        )

        if message.stream is StreamName.RELATED:
            self._render_related(message.items)
            return
        self._render_cards(self.store.displayed())
        if message.stream is StreamName.MAIN and message.state is StreamState.IDLE:
            self._update_proximity()
            self.continuation.evaluate()

    def _render_cards(self, items: Tuple[Article, ...]) -> None:
        cards = self.query_one("#cards", ListView)
        rendered = self._rendered
        if items[: len(rendered)] == rendered and rendered:
            for article in items[len(rendered) :]:
                cards.append(CardItem(article))
        elif items != rendered:
            cards.clear()
            for article in items:
                cards.append(CardItem(article))
        self._rendered = items

    def _render_related(self, items: Tuple[Article, ...]) -> None:
        pane = self.query_one("#related-pane")
        related = self.query_one("#related", ListView)
        related.clear()
        for article in items:
            related.append(CardItem(article, compact=True))
        pane.set_class(self.store.related_open and bool(items), "open")

    def _update_proximity(self) -> None:
        cards = self.query_one("#cards", ListView)
        if self.store.search_term:
            self.continuation.set_proximity(False)
            return
        total = len(cards.children)
        index = cards.index
        near = index is not None and index >= total - self.feed_config.proximity_threshold
        self.continuation.set_proximity(near)

    def on_list_view_highlighted(self, event: ListView.Highlighted) -> None:
        if event.list_view.id == "cards":
            self._update_proximity()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "search":
            return
        term = event.value
        if not term.strip():
            return
        self.run_worker(
            lambda: self.store.submit_search(term), name="search_loader", thread=True
        )
        self.query_one("#cards", ListView).focus()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search" and not event.value and self.store.search_term:
            self.store.clear_search()

    def _highlighted_article(self) -> Optional[Article]:
        for list_id in ("#cards", "#related"):
            view = self.query_one(list_id, ListView)
            if view.has_focus and isinstance(view.highlighted_child, CardItem):
                return view.highlighted_child.article
        return None

    def action_show_related(self) -> None:
        article = self._highlighted_article()
        if article is None or article.page_id is None:
            return
        page_id = article.page_id
        self.run_worker(
            lambda: self.store.select_related(page_id), name="related_loader", thread=True
        )

    def action_dismiss_related(self) -> None:
        if self.store.related_open:
            self.store.dismiss_related()
            self.query_one("#cards", ListView).focus()

    def action_open_in_browser(self) -> None:
        article = self._highlighted_article()
        if article is not None and article.page_id is not None:
            webbrowser.open(self.store.client.page_url(article.page_id))

    def action_reload(self) -> None:
        self.store.reset()
        self.query_one("#search", Input).value = ""
        self.run_worker(self.store.mount, name="main_loader", thread=True)

    def action_focus_search(self) -> None:
        self.query_one("#search", Input).focus()
