from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from vlcremote.config import DEFAULT_MEDIA_FOLDER_KEYWORDS, DEFAULT_SYSTEM_FOLDER_KEYWORDS
from vlcremote.errors import is_transient
from vlcremote.interfaces import DirectoryLister
from vlcremote.models import CrawlReport, CrawlTask, Entry, Priority

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 20
DEFAULT_MAX_CONCURRENCY = 5

_SKIPPED_NAMES = frozenset([".", ".."])


class CancelToken:
    """Cooperative cancellation shared between a caller and a crawl.

    ``cancel()`` is idempotent and may be called from any thread. Crawls
    register a wake-up callback so they notice cancellation without polling.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for cb in callbacks:
            try:
                cb()
            except Exception:
                _LOGGER.exception("cancel callback failed")

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation; returns a function that unregisters it."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass


@dataclass
class CrawlState:
    """Mutable bookkeeping of a single crawl. Guarded by the crawl's condition."""

    pending: Dict[Priority, Deque[CrawlTask]] = field(
        default_factory=lambda: {p: deque() for p in Priority}
    )
    visited: Set[str] = field(default_factory=set)
    in_flight: int = 0
    cancelled: bool = False

    def push(self, task: CrawlTask) -> None:
        self.pending[task.priority].append(task)

    def pop(self) -> Optional[CrawlTask]:
        # Strict order: LOW only runs once HIGH and NORMAL are both empty.
        for prio in Priority:
            queue = self.pending[prio]
            if queue:
                return queue.popleft()
        return None

    def has_pending(self) -> bool:
        return any(self.pending[p] for p in Priority)

    def clear_pending(self) -> None:
        for queue in self.pending.values():
            queue.clear()


class Crawler:
    """Prioritized breadth-first search over a remote directory tree.

    The remote side can only list one directory per request, so the crawl
    keeps up to ``max_concurrency`` listings running on a thread pool and
    reports the matches of each directory as soon as its listing arrives.
    """

    def __init__(
        self,
        lister: DirectoryLister,
        *,
        media_keywords: Optional[Sequence[str]] = None,
        system_keywords: Optional[Sequence[str]] = None,
    ) -> None:
        self.lister = lister
        self.media_keywords: Tuple[str, ...] = tuple(
            k.lower() for k in (media_keywords if media_keywords is not None else DEFAULT_MEDIA_FOLDER_KEYWORDS)
        )
        self.system_keywords: Tuple[str, ...] = tuple(
            k.lower() for k in (system_keywords if system_keywords is not None else DEFAULT_SYSTEM_FOLDER_KEYWORDS)
        )

    def classify(self, name: str) -> Priority:
        n = (name or "").lower()
        if any(k in n for k in self.media_keywords):
            return Priority.HIGH
        if any(k in n for k in self.system_keywords):
            return Priority.LOW
        return Priority.NORMAL

    def _scan(
        self, entries: Iterable[Entry], needle: str, depth: int, max_depth: int
    ) -> Tuple[List[Entry], List[CrawlTask]]:
        matches: List[Entry] = []
        children: List[CrawlTask] = []
        for entry in entries or []:
            name = entry.name or ""
            if name in _SKIPPED_NAMES:
                continue
            if needle in name.lower():
                matches.append(entry)
            if entry.is_directory and depth < max_depth:
                children.append(CrawlTask(entry.handle, depth + 1, self.classify(name)))
        return matches, children

    def run(
        self,
        root: str,
        query: str,
        on_batch: Callable[[List[Entry]], None],
        *,
        cancel_token: Optional[CancelToken] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> CrawlReport:
        """Search below ``root`` for entries whose name contains ``query``.

        Blocks until every reachable directory within ``max_depth`` has been
        listed, or until ``cancel_token`` is cancelled and the listings
        already sent have returned. ``on_batch`` receives one list per
        directory with matches; calls are serialized but happen on worker
        threads, so it should return quickly.
        """
        token = cancel_token or CancelToken()
        report = CrawlReport()
        needle = (query or "").lower()
        if not needle:
            return report

        max_concurrency = max(1, int(max_concurrency))
        state = CrawlState()
        state.push(CrawlTask(root, 0, Priority.HIGH))
        cond = threading.Condition()
        batch_lock = threading.Lock()
        started = time.monotonic()

        def wake() -> None:
            with cond:
                cond.notify_all()

        def visit(task: CrawlTask) -> None:
            try:
                try:
                    entries = self.lister.list(task.handle)
                except Exception as exc:
                    if is_transient(exc):
                        _LOGGER.debug("listing %s failed: %s", task.handle, exc)
                    else:
                        _LOGGER.warning("listing %s failed: %r", task.handle, exc)
                    with cond:
                        report.failed += 1
                    return

                if token.cancelled:
                    return
                matches, children = self._scan(entries, needle, task.depth, max_depth)
                with cond:
                    for child in children:
                        state.push(child)

                if not matches:
                    return
                with batch_lock:
                    if token.cancelled:
                        return
                    report.batches += 1
                    report.matches += len(matches)
                    try:
                        on_batch(matches)
                    except Exception:
                        _LOGGER.exception("search batch handler failed for %s", task.handle)
            finally:
                with cond:
                    state.in_flight -= 1
                    cond.notify_all()

        _LOGGER.debug("crawl start root=%s query=%r depth=%d workers=%d", root, query, max_depth, max_concurrency)
        unregister = token.add_callback(wake)
        executor = ThreadPoolExecutor(max_workers=max_concurrency, thread_name_prefix="vlcremote-crawl")
        try:
            with cond:
                while True:
                    if token.cancelled:
                        state.cancelled = True
                        state.clear_pending()
                        while state.in_flight > 0:
                            cond.wait()
                        break
                    if state.in_flight >= max_concurrency:
                        cond.wait()
                        continue
                    task = state.pop()
                    if task is None:
                        if state.in_flight == 0:
                            break
                        cond.wait()
                        continue
                    if task.handle in state.visited:
                        continue
                    state.visited.add(task.handle)
                    state.in_flight += 1
                    report.listed += 1
                    executor.submit(visit, task)
        finally:
            unregister()
            executor.shutdown(wait=True)

        report.cancelled = state.cancelled
        _LOGGER.debug(
            "crawl done root=%s listed=%d failed=%d matches=%d cancelled=%s in %.2fs",
            root,
            report.listed,
            report.failed,
            report.matches,
            report.cancelled,
            time.monotonic() - started,
        )
        return report

    def search_all(self, root: str, query: str, **kwargs) -> List[Entry]:
        """Run a crawl to completion and return every match."""
        results: List[Entry] = []
        self.run(root, query, results.extend, **kwargs)
        return results
