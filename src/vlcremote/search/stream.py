"""Pull-based access to a crawl.

The crawl runs on a background thread and hands match batches to the
consumer through a bounded channel: when the consumer falls behind, the
crawl's completion path blocks instead of buffering without limit.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, Iterator, List, Optional

from vlcremote.errors import CrawlError
from vlcremote.models import Entry
from vlcremote.search.crawler import CancelToken, Crawler

_LOGGER = logging.getLogger(__name__)


class BatchChannel:
    def __init__(self, capacity: int = 16) -> None:
        self._capacity = max(1, int(capacity))
        self._items: Deque[List[Entry]] = deque()
        self._cond = threading.Condition()
        self._closed = False

    def put(self, batch: List[Entry]) -> bool:
        """Block while full; returns False once the channel is closed."""
        with self._cond:
            while len(self._items) >= self._capacity and not self._closed:
                self._cond.wait()
            if self._closed:
                return False
            self._items.append(list(batch))
            self._cond.notify_all()
            return True

    def get(self) -> Optional[List[Entry]]:
        """Next batch, or None when closed and drained."""
        with self._cond:
            while not self._items and not self._closed:
                self._cond.wait()
            if self._items:
                batch = self._items.popleft()
                self._cond.notify_all()
                return batch
            return None

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)


def iter_search(
    crawler: Crawler,
    root: str,
    query: str,
    *,
    max_buffered_batches: int = 16,
    cancel_token: Optional[CancelToken] = None,
    **kwargs,
) -> Iterator[List[Entry]]:
    """Yield match batches of one crawl as the consumer asks for them.

    Leaving the loop early (``break``, ``close()``, garbage collection)
    cancels the crawl and waits for its outstanding listings to return.
    Each call starts a fresh crawl.
    """
    token = cancel_token or CancelToken()
    channel = BatchChannel(max_buffered_batches)
    failures: List[BaseException] = []
    finished = threading.Event()

    def produce() -> None:
        try:
            crawler.run(root, query, channel.put, cancel_token=token, **kwargs)
        except Exception as exc:
            failures.append(exc)
        finally:
            finished.set()
            channel.close()

    unregister = token.add_callback(channel.close)
    worker = threading.Thread(target=produce, name="vlcremote-search", daemon=True)
    worker.start()
    try:
        while True:
            batch = channel.get()
            if batch is None:
                break
            yield batch
        if failures:
            raise CrawlError(f"search under {root} failed: {failures[0]}") from failures[0]
    finally:
        if not finished.is_set():
            _LOGGER.debug("search consumer left early; cancelling crawl of %s", root)
            token.cancel()
        unregister()
        worker.join()
