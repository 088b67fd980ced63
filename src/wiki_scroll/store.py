from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from .client import EncyclopediaClient
from .datamodels import Article, StreamName, StreamState
from .errors import EncyclopediaFetchError
from .preloader import ImagePreloader

logger = logging.getLogger("wikiscroll")

Listener = Callable[[StreamName, StreamState, Tuple[Article, ...]], None]


@dataclass
class _Stream:
    items: Tuple[Article, ...] = ()
    state: StreamState = StreamState.IDLE
    generation: int = 0
    inflight_key: Optional[Hashable] = None


class FeedStore:
    """Holds the main, search and related streams and runs their fetches.

    Every trigger method blocks until its fetch has settled, so hosts run
    them on worker threads. Each stream has its own guard:

    * main is single flight: a trigger while it is loading is ignored.
    * search and related ignore a trigger identical to the one in flight
      and otherwise let the newer trigger supersede the older one. Only the
      latest trigger for a stream may commit (last request wins).

    Fetch failures are logged and leave the stream untouched.
    """

    def __init__(self, client: EncyclopediaClient, preloader: ImagePreloader):
        self.client = client
        self.preloader = preloader
        self._lock = threading.Lock()
        self._streams: Dict[StreamName, _Stream] = {name: _Stream() for name in StreamName}
        self._listeners: List[Listener] = []
        self._mounted = False
        self._search_term: Optional[str] = None
        self._related_open = False

    # --- Observation ---
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self, stream: StreamName) -> Tuple[Article, ...]:
        with self._lock:
            return self._streams[stream].items

    def state(self, stream: StreamName) -> StreamState:
        with self._lock:
            return self._streams[stream].state

    def is_loading(self, stream: Optional[StreamName] = None) -> bool:
        with self._lock:
            if stream is not None:
                return self._streams[stream].state is StreamState.LOADING
            return any(s.state is StreamState.LOADING for s in self._streams.values())

    @property
    def search_term(self) -> Optional[str]:
        return self._search_term

    @property
    def related_open(self) -> bool:
        return self._related_open

    def displayed(self) -> Tuple[Article, ...]:
        """The stream the feed view shows: search results while a term is active."""
        with self._lock:
            if self._search_term:
                return self._streams[StreamName.SEARCH].items
            return self._streams[StreamName.MAIN].items

    # --- Triggers ---
    def mount(self) -> bool:
        with self._lock:
            if self._mounted:
                return False
            self._mounted = True
        return self.continue_main()

    def continue_main(self) -> bool:
        """Append one more random batch to the main stream."""
        return self._run(
            StreamName.MAIN,
            key=None,
            fetch=self.client.random_batch,
            append=True,
        )

    def submit_search(self, term: str) -> bool:
        term = (term or "").strip()
        if not term:
            logger.debug("Ignoring empty search submission")
            return False
        return self._run(
            StreamName.SEARCH,
            key=term,
            fetch=lambda: self.client.search_batch(term),
            append=False,
        )

    def select_related(self, page_id: int) -> bool:
        return self._run(
            StreamName.RELATED,
            key=page_id,
            fetch=lambda: self.client.related_batch(page_id),
            append=False,
        )

    def clear_search(self) -> None:
        with self._lock:
            self._search_term = None
        self._notify(StreamName.SEARCH)

    def dismiss_related(self) -> None:
        with self._lock:
            self._related_open = False
            self._discard(self._streams[StreamName.RELATED])
        self._notify(StreamName.RELATED)

    def reset(self) -> None:
        """Empty every stream and allow :meth:`mount` to run again."""
        with self._lock:
            for stream in self._streams.values():
                self._discard(stream)
            self._mounted = False
            self._search_term = None
            self._related_open = False
        logger.info("Feed reset")
        for name in StreamName:
            self._notify(name)

    # --- Internals ---
    def _discard(self, stream: _Stream) -> None:
        stream.generation += 1
        stream.items = ()
        stream.state = StreamState.IDLE
        stream.inflight_key = None

    def _begin(self, name: StreamName, key: Optional[Hashable]) -> Optional[int]:
        with self._lock:
            stream = self._streams[name]
            if stream.state is StreamState.LOADING:
                if name is StreamName.MAIN or stream.inflight_key == key:
                    logger.debug("Ignoring %s trigger %r while loading", name.value, key)
                    return None
            if name is not StreamName.MAIN:
                stream.generation += 1
            stream.state = StreamState.LOADING
            stream.inflight_key = key
            if name is StreamName.SEARCH:
                self._search_term = key
            elif name is StreamName.RELATED:
                self._related_open = True
            return stream.generation

    def _run(
        self,
        name: StreamName,
        key: Optional[Hashable],
        fetch: Callable[[], Sequence[Article]],
        append: bool,
    ) -> bool:
        generation = self._begin(name, key)
        if generation is None:
            return False
        self._notify(name)

        records = None
        try:
            records = self._prepare(fetch())
        except EncyclopediaFetchError as e:
            logger.error("Failed to load %s stream: %s", name.value, e)
        finally:
            committed = self._finish(name, generation, records, append)
        if committed:
            self._notify(name)
        return True

    def _prepare(self, candidates: Sequence[Article]) -> List[Article]:
        records = [c for c in candidates if c.has_thumbnail]
        if len(records) < len(candidates):
            logger.debug(
                "Dropped %d candidates without a thumbnail", len(candidates) - len(records)
            )
        self.preloader.preload(records)
        return records

    def _finish(
        self,
        name: StreamName,
        generation: int,
        records: Optional[List[Article]],
        append: bool,
    ) -> bool:
        with self._lock:
            stream = self._streams[name]
            if stream.generation != generation:
                logger.info("Discarding superseded %s result", name.value)
                return False
            if records is not None:
                if append:
                    stream.items = stream.items + tuple(records)
                else:
                    stream.items = tuple(records)
                logger.info(
                    "Committed %d records to %s (now %d)",
                    len(records),
                    name.value,
                    len(stream.items),
                )
            stream.state = StreamState.IDLE
            stream.inflight_key = None
            return True

    def _notify(self, name: StreamName) -> None:
        with self._lock:
            stream = self._streams[name]
            state, items = stream.state, stream.items
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(name, state, items)
            except Exception as e:
                logger.error("Feed listener %r failed: %s", listener, e)
