from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .datamodels import StreamName
from .store import FeedStore

logger = logging.getLogger("wikiscroll")

Dispatch = Callable[[Callable[[], object]], None]


def _run_inline(fn: Callable[[], object]) -> None:
    fn()


class ContinuationController:
    """Turns the host's "near the end of the feed" signal into main-stream loads.

    The host reports proximity with :meth:`set_proximity`. A rising edge fires
    a continuation when the main stream is idle. After the host has rendered a
    main-stream update it calls :meth:`evaluate`, which fires again only if
    proximity is still reported and the stream grew since the last
    continuation, so a failed or empty batch waits for the next edge.
    """

    def __init__(self, store: FeedStore, dispatch: Optional[Dispatch] = None):
        self.store = store
        self._dispatch = dispatch or _run_inline
        self._lock = threading.Lock()
        self._proximity = False
        self._fired_at: Optional[int] = None

    @property
    def proximity(self) -> bool:
        return self._proximity

    def set_proximity(self, reached: bool) -> bool:
        with self._lock:
            rising = reached and not self._proximity
            self._proximity = reached
        if not rising:
            return False
        return self._fire()

    def evaluate(self) -> bool:
        with self._lock:
            if not self._proximity:
                return False
            size = len(self.store.snapshot(StreamName.MAIN))
            if self._fired_at is not None and size <= self._fired_at:
                return False
        return self._fire()

    def _fire(self) -> bool:
        if self.store.is_loading(StreamName.MAIN):
            logger.debug("Proximity reached while main stream is loading")
            return False
        with self._lock:
            self._fired_at = len(self.store.snapshot(StreamName.MAIN))
        logger.debug("Requesting continuation at %d records", self._fired_at)
        self._dispatch(self.store.continue_main)
        return True
