from typing import Tuple

from textual.message import Message

from .datamodels import Article, StreamName, StreamState


class FeedUpdated(Message):
    """A stream changed state or received new records."""
    def __init__(
        self, stream: StreamName, state: StreamState, items: Tuple[Article, ...]
    ) -> None:
        self.stream = stream
        self.state = state
        self.items = items
        super().__init__()
