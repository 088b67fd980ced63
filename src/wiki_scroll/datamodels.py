from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


# --- Data models ---
@dataclass(frozen=True)
class Thumbnail:
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class Article:
    page_id: Optional[int]
    title: str
    extract: str = ""
    thumbnail: Optional[Thumbnail] = None

    @property
    def has_thumbnail(self) -> bool:
        return self.thumbnail is not None and bool(self.thumbnail.url)


class StreamName(str, Enum):
    MAIN = "main"
    SEARCH = "search"
    RELATED = "related"


class StreamState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
