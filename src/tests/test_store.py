from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from wiki_scroll.client import EncyclopediaClient
from wiki_scroll.datamodels import Article, StreamName, StreamState, Thumbnail
from wiki_scroll.errors import MalformedResponseError, NetworkError
from wiki_scroll.preloader import ImagePreloader, PreloadReport
from wiki_scroll.store import FeedStore

WAIT = 5


def _article(page_id, thumbnail=True):
    thumb = Thumbnail(f"https://img/{page_id}.jpg", 400, 300) if thumbnail else None
    return Article(page_id=page_id, title=f"Page {page_id}", extract="...", thumbnail=thumb)


def _batch(ids, missing=()):
    return [_article(i, thumbnail=i not in missing) for i in ids]


@pytest.fixture
def client():
    return MagicMock(spec=EncyclopediaClient)


@pytest.fixture
def preloader():
    mock = MagicMock(spec=ImagePreloader)
    mock.preload.return_value = PreloadReport()
    return mock


@pytest.fixture
def store(client, preloader):
    return FeedStore(client, preloader)


def _ids(items):
    return [a.page_id for a in items]


def _blocking(result):
    """A fetch stand-in that waits for release() before returning result."""
    started = threading.Event()
    release = threading.Event()

    def fetch(*args):
        started.set()
        assert release.wait(WAIT)
        return result

    return fetch, started, release


def test_initial_streams_are_idle_and_empty(store):
    for name in StreamName:
        assert store.snapshot(name) == ()
        assert store.state(name) is StreamState.IDLE
    assert not store.is_loading()
    assert store.search_term is None
    assert not store.related_open


def test_only_thumbnailed_candidates_are_committed_in_order(store, client, preloader):
    missing = {3, 9, 17, 28, 40}
    client.random_batch.return_value = _batch(range(1, 41), missing=missing)

    assert store.mount()

    committed = store.snapshot(StreamName.MAIN)
    assert len(committed) == 35
    assert _ids(committed) == [i for i in range(1, 41) if i not in missing]
    assert all(a.thumbnail and a.thumbnail.url for a in committed)
    preloaded = preloader.preload.call_args.args[0]
    assert _ids(preloaded) == _ids(committed)
    assert store.state(StreamName.MAIN) is StreamState.IDLE


def test_mount_runs_only_once(store, client):
    client.random_batch.return_value = _batch([1])
    assert store.mount()
    assert not store.mount()
    assert client.random_batch.call_count == 1


def test_continuation_appends_and_keeps_duplicate_ids(store, client):
    # Repeats across random batches are not removed.
    client.random_batch.side_effect = [_batch([1, 2]), _batch([2, 3])]
    store.continue_main()
    store.continue_main()
    assert _ids(store.snapshot(StreamName.MAIN)) == [1, 2, 2, 3]


def test_failed_fetch_leaves_stream_unchanged_and_idle(store, client):
    client.random_batch.side_effect = [_batch([1, 2]), NetworkError("offline")]
    store.continue_main()
    assert store.continue_main()
    assert _ids(store.snapshot(StreamName.MAIN)) == [1, 2]
    assert store.state(StreamName.MAIN) is StreamState.IDLE


def test_whitespace_search_is_a_no_op(store, client):
    client.search_batch.return_value = _batch([1])
    store.submit_search("Volcano")
    before = store.snapshot(StreamName.SEARCH)

    assert not store.submit_search("   \t ")

    assert client.search_batch.call_count == 1
    assert store.snapshot(StreamName.SEARCH) == before
    assert store.search_term == "Volcano"
    assert store.state(StreamName.SEARCH) is StreamState.IDLE


def test_search_replaces_previous_results(store, client):
    client.search_batch.side_effect = [_batch([1, 2]), _batch([7, 8, 9], missing={8})]
    store.submit_search("first")
    store.submit_search("  second ")
    assert _ids(store.snapshot(StreamName.SEARCH)) == [7, 9]
    assert store.search_term == "second"
    client.search_batch.assert_called_with("second")


def test_search_failure_raises_nothing_and_keeps_results(store, client):
    client.search_batch.side_effect = [_batch([1]), MalformedResponseError("no search")]
    store.submit_search("ok")
    assert store.submit_search("broken")
    assert _ids(store.snapshot(StreamName.SEARCH)) == [1]
    assert store.state(StreamName.SEARCH) is StreamState.IDLE


def test_displayed_follows_active_search_term(store, client):
    client.random_batch.return_value = _batch([1, 2])
    client.search_batch.return_value = _batch([5])
    store.mount()
    assert _ids(store.displayed()) == [1, 2]

    store.submit_search("rivers")
    assert _ids(store.displayed()) == [5]

    store.clear_search()
    assert _ids(store.displayed()) == [1, 2]
    assert _ids(store.snapshot(StreamName.SEARCH)) == [5]


def test_main_is_single_flight(store, client):
    fetch, started, release = _blocking(_batch([1, 2]))
    client.random_batch.side_effect = fetch

    worker = threading.Thread(target=store.continue_main)
    worker.start()
    assert started.wait(WAIT)
    assert store.state(StreamName.MAIN) is StreamState.LOADING

    results = [store.continue_main() for _ in range(5)]
    release.set()
    worker.join(WAIT)

    assert results == [False] * 5
    assert client.random_batch.call_count == 1
    assert _ids(store.snapshot(StreamName.MAIN)) == [1, 2]
    assert store.state(StreamName.MAIN) is StreamState.IDLE


def test_streams_do_not_block_each_other(store, client):
    fetch, started, release = _blocking(_batch([1]))
    client.random_batch.side_effect = fetch
    client.search_batch.return_value = _batch([5])
    client.related_batch.return_value = _batch([9])

    worker = threading.Thread(target=store.continue_main)
    worker.start()
    assert started.wait(WAIT)

    assert store.submit_search("glaciers")
    assert store.select_related(1)
    assert _ids(store.snapshot(StreamName.SEARCH)) == [5]
    assert _ids(store.snapshot(StreamName.RELATED)) == [9]
    assert store.is_loading(StreamName.MAIN)

    release.set()
    worker.join(WAIT)
    assert not store.is_loading()


def test_search_race_last_request_wins(store, client):
    fetch_a, started_a, release_a = _blocking(_batch([1, 2]))

    def search(term):
        if term == "A":
            return fetch_a()
        return _batch([10, 11])

    client.search_batch.side_effect = search

    worker = threading.Thread(target=store.submit_search, args=("A",))
    worker.start()
    assert started_a.wait(WAIT)

    assert store.submit_search("B")
    assert _ids(store.snapshot(StreamName.SEARCH)) == [10, 11]

    # A's results land after B's and are discarded.
    release_a.set()
    worker.join(WAIT)
    assert _ids(store.snapshot(StreamName.SEARCH)) == [10, 11]
    assert store.search_term == "B"
    assert store.state(StreamName.SEARCH) is StreamState.IDLE


def test_identical_search_is_ignored_while_in_flight(store, client):
    fetch, started, release = _blocking(_batch([1]))
    client.search_batch.side_effect = fetch

    worker = threading.Thread(target=store.submit_search, args=("moss",))
    worker.start()
    assert started.wait(WAIT)
    assert not store.submit_search(" moss ")
    release.set()
    worker.join(WAIT)

    assert client.search_batch.call_count == 1
    assert _ids(store.snapshot(StreamName.SEARCH)) == [1]


def test_related_replace_is_never_observed_mixed(store, client):
    first, second = _batch([1, 2, 3]), _batch([4, 5])
    seen = []
    store.subscribe(lambda name, state, items: seen.append(items) if name is StreamName.RELATED else None)

    client.related_batch.return_value = first
    store.select_related(100)

    fetch, started, release = _blocking(second)
    client.related_batch.side_effect = fetch
    worker = threading.Thread(target=store.select_related, args=(200,))
    worker.start()
    assert started.wait(WAIT)
    assert store.snapshot(StreamName.RELATED) == tuple(first)
    release.set()
    worker.join(WAIT)

    assert store.snapshot(StreamName.RELATED) == tuple(second)
    assert store.related_open
    for items in seen:
        assert items in ((), tuple(first), tuple(second))
    client.related_batch.assert_called_with(200)


def test_dismiss_related_clears_stream_and_drops_inflight_result(store, client):
    fetch, started, release = _blocking(_batch([4, 5]))
    client.related_batch.side_effect = fetch

    worker = threading.Thread(target=store.select_related, args=(7,))
    worker.start()
    assert started.wait(WAIT)
    assert store.related_open

    store.dismiss_related()
    release.set()
    worker.join(WAIT)

    assert store.snapshot(StreamName.RELATED) == ()
    assert not store.related_open
    assert store.state(StreamName.RELATED) is StreamState.IDLE


def test_reset_empties_streams_and_rearms_mount(store, client):
    client.random_batch.return_value = _batch([1])
    client.search_batch.return_value = _batch([2])
    store.mount()
    store.submit_search("term")

    store.reset()

    assert store.snapshot(StreamName.MAIN) == ()
    assert store.snapshot(StreamName.SEARCH) == ()
    assert store.search_term is None
    assert store.mount()
    assert _ids(store.snapshot(StreamName.MAIN)) == [1]


def test_listeners_see_loading_then_idle(store, client):
    client.random_batch.return_value = _batch([1])
    events = []
    unsubscribe = store.subscribe(lambda name, state, items: events.append((name, state, len(items))))

    store.continue_main()
    unsubscribe()
    store.continue_main()

    assert events == [
        (StreamName.MAIN, StreamState.LOADING, 0),
        (StreamName.MAIN, StreamState.IDLE, 1),
    ]


def test_failing_listener_does_not_break_commit(store, client):
    client.random_batch.return_value = _batch([1])
    store.subscribe(MagicMock(side_effect=RuntimeError("boom")))
    store.continue_main()
    assert _ids(store.snapshot(StreamName.MAIN)) == [1]


def test_related_stream_kept_when_links_response_has_no_query():
    linked = MagicMock()
    linked.json.return_value = {
        "query": {
            "pages": {
                "9": {"pageid": 9, "title": "Linked", "thumbnail": {"source": "https://img/9.jpg"}}
            }
        }
    }
    empty = MagicMock()
    empty.json.return_value = {"batchcomplete": ""}
    session = MagicMock()
    session.get.side_effect = [linked, empty]
    store = FeedStore(EncyclopediaClient(session=session), MagicMock(spec=ImagePreloader))

    store.select_related(1)
    before = store.snapshot(StreamName.RELATED)
    assert store.select_related(2)

    assert _ids(before) == [9]
    assert store.snapshot(StreamName.RELATED) == before
    assert store.state(StreamName.RELATED) is StreamState.IDLE
