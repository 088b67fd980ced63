from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import FeedConfig
from .datamodels import Article, Thumbnail
from .errors import EncyclopediaFetchError, MalformedResponseError, NetworkError

logger = logging.getLogger("wikiscroll")


class EncyclopediaClient:
    """Typed wrapper over the three Wikipedia query shapes the feed needs.

    Every method either returns a list of unfiltered candidates or raises a
    subclass of :class:`EncyclopediaFetchError`. Page mapping never raises:
    missing fields become empty values on the resulting :class:`Article`.
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or FeedConfig()
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        s = requests.Session()
        s.headers.update({"User-Agent": self.config.user_agent})
        retries = Retry(
            total=self.config.http_retries,
            backoff_factor=0.3,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retries)
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        return s

    def _page_props(self) -> Dict[str, str]:
        return {
            "prop": "extracts|pageimages",
            "exintro": "1",
            "explaintext": "1",
            "exchars": str(self.config.extract_chars),
            "exlimit": "max",
            "piprop": "thumbnail",
            "pithumbsize": str(self.config.thumbnail_size),
        }

    def _query(self, params: Dict[str, str]) -> Dict[str, Any]:
        query = {"action": "query", "format": "json", **params}
        logger.debug("Querying %s with %s", self.config.api_url, query)
        try:
            resp = self.session.get(
                self.config.api_url, params=query, timeout=self.config.http_timeout
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"Request to {self.config.api_url} failed: {e}") from e
        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError("Response is not a JSON object")
        return data

    def page_url(self, page_id: int) -> str:
        return f"{self.config.site_url}/?curid={page_id}"

    def random_batch(self, count: Optional[int] = None) -> List[Article]:
        if count is None:
            count = self.config.random_batch_size
        data = self._query(
            {
                "generator": "random",
                "grnnamespace": "0",
                "grnlimit": str(count),
                **self._page_props(),
            }
        )
        articles = [_to_article(page) for page in _pages(data).values()]
        logger.info("Fetched %d random candidates (requested %d)", len(articles), count)
        return articles

    def search_batch(self, term: str) -> List[Article]:
        data = self._query({"list": "search", "srsearch": term})
        hits = _search_hits(data)
        page_ids = [hit["pageid"] for hit in hits if isinstance(hit.get("pageid"), int)]
        logger.info("Search %r matched %d pages", term, len(page_ids))
        if not page_ids:
            return []

        workers = min(self.config.max_workers, len(page_ids))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.full_article, pid) for pid in page_ids]
            articles = []
            for page_id, future in zip(page_ids, futures):
                try:
                    articles.append(future.result())
                except EncyclopediaFetchError as e:
                    logger.error("Failed to hydrate search hit %s: %s", page_id, e)
        return articles

    def full_article(self, page_id: int) -> Article:
        data = self._query({"pageids": str(page_id), **self._page_props()})
        page = _pages(data).get(str(page_id))
        if not isinstance(page, dict):
            raise MalformedResponseError(f"Page {page_id} missing from response")
        return _to_article(page)

    def related_batch(self, page_id: int, limit: Optional[int] = None) -> List[Article]:
        if limit is None:
            limit = self.config.related_limit
        data = self._query(
            {
                "generator": "links",
                "gpllimit": str(limit),
                "pageids": str(page_id),
                **self._page_props(),
            }
        )
        query = data.get("query")
        if not isinstance(query, dict):
            raise MalformedResponseError("Response has no query object")
        if "pages" not in query:
            logger.info("Page %s has no outbound links", page_id)
            return []
        articles = [_to_article(page) for page in _pages(data).values()]
        logger.info("Fetched %d related candidates for page %s", len(articles), page_id)
        return articles


def _pages(data: Dict[str, Any]) -> Dict[str, Any]:
    query = data.get("query")
    pages = query.get("pages") if isinstance(query, dict) else None
    if not isinstance(pages, dict):
        raise MalformedResponseError("Response has no query.pages object")
    return {key: page for key, page in pages.items() if isinstance(page, dict)}


def _search_hits(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    query = data.get("query")
    hits = query.get("search") if isinstance(query, dict) else None
    if not isinstance(hits, list):
        raise MalformedResponseError("Response has no query.search list")
    return [hit for hit in hits if isinstance(hit, dict)]


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_article(page: Dict[str, Any]) -> Article:
    thumbnail = None
    thumb = page.get("thumbnail")
    if isinstance(thumb, dict) and isinstance(thumb.get("source"), str):
        thumbnail = Thumbnail(
            url=thumb["source"],
            width=_as_int(thumb.get("width")),
            height=_as_int(thumb.get("height")),
        )
    title = page.get("title")
    extract = page.get("extract")
    return Article(
        page_id=_as_int(page.get("pageid")),
        title=title if isinstance(title, str) else "",
        extract=extract if isinstance(extract, str) else "",
        thumbnail=thumbnail,
    )
