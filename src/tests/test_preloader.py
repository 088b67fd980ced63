from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from wiki_scroll.config import FeedConfig
from wiki_scroll.datamodels import Article, Thumbnail
from wiki_scroll.errors import ImageLoadError
from wiki_scroll.preloader import ImagePreloader


def _image(content_type="image/jpeg", content=b"\xff\xd8\xff"):
    resp = MagicMock()
    resp.headers = {"Content-Type": content_type}
    resp.content = content
    return resp


def _article(page_id, url):
    return Article(page_id=page_id, title=f"Page {page_id}", thumbnail=Thumbnail(url))


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def preloader(session):
    return ImagePreloader(FeedConfig(), session=session)


def test_preload_settles_all_probes_and_keeps_batch(preloader, session):
    responses = {
        "https://img/1.jpg": _image(),
        "https://img/2.jpg": requests.ConnectionError("reset"),
        "https://img/3.jpg": _image(content_type="text/html"),
    }

    def get(url, timeout):
        result = responses[url]
        if isinstance(result, Exception):
            raise result
        return result

    session.get.side_effect = get
    batch = [_article(i, f"https://img/{i}.jpg") for i in (1, 2, 3)]

    report = preloader.preload(batch)

    assert session.get.call_count == 3
    assert report.loaded == [1]
    assert sorted(report.failed) == [2, 3]
    assert [a.page_id for a in batch] == [1, 2, 3]


def test_preload_of_empty_batch_makes_no_requests(preloader, session):
    report = preloader.preload([])
    assert report.loaded == []
    assert report.failed == []
    session.get.assert_not_called()


def test_probe_rejects_empty_body(preloader, session):
    session.get.return_value = _image(content=b"")
    with pytest.raises(ImageLoadError):
        preloader.probe("https://img/empty.jpg")


def test_probe_rejects_http_error(preloader, session):
    resp = _image()
    resp.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
    session.get.return_value = resp
    with pytest.raises(ImageLoadError) as excinfo:
        preloader.probe("https://img/missing.jpg")
    assert excinfo.value.url == "https://img/missing.jpg"


def test_caller_session_headers_are_left_alone(session):
    ImagePreloader(FeedConfig(), session=session)
    session.headers.update.assert_not_called()
