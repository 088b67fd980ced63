from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import requests

from .config import FeedConfig
from .datamodels import Article
from .errors import ImageLoadError

logger = logging.getLogger("wikiscroll")


@dataclass
class PreloadReport:
    loaded: List[Optional[int]] = field(default_factory=list)
    failed: List[Optional[int]] = field(default_factory=list)


class ImagePreloader:
    """Warms every thumbnail of a batch before the batch is committed.

    Settle-all: :meth:`preload` returns only once every probe has either
    succeeded or failed, and a failed probe never removes its article.
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or FeedConfig()
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": self.config.user_agent})
        self.session = session

    def probe(self, url: str) -> None:
        """Fetch one image, raising ImageLoadError if it is not usable."""
        try:
            resp = self.session.get(url, timeout=self.config.http_timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ImageLoadError(url, str(e)) from e
        content_type = resp.headers.get("Content-Type", "")
        if not content_type.startswith("image/"):
            raise ImageLoadError(url, f"unexpected content type {content_type!r}")
        if not resp.content:
            raise ImageLoadError(url, "empty body")

    def preload(self, articles: Sequence[Article]) -> PreloadReport:
        report = PreloadReport()
        targets = [a for a in articles if a.has_thumbnail]
        if not targets:
            return report

        workers = min(self.config.max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_article = {
                executor.submit(self.probe, a.thumbnail.url): a for a in targets
            }
            for future in as_completed(future_to_article):
                article = future_to_article[future]
                try:
                    future.result()
                    report.loaded.append(article.page_id)
                except ImageLoadError as e:
                    logger.debug("Thumbnail preload failed for %s: %s", article.page_id, e)
                    report.failed.append(article.page_id)
                except Exception as e:
                    logger.warning("Unexpected preload error for %s: %s", article.page_id, e)
                    report.failed.append(article.page_id)

        logger.info(
            "Preloaded %d/%d thumbnails", len(report.loaded), len(targets)
        )
        return report
