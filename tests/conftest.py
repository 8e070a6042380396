import threading
import time
from collections import deque

import pytest
import requests

from vlcremote.models import Entry, MediaTrack, PlayerStatus


def wait_for(predicate, timeout=2.0, interval=0.005):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_tree(root, layout):
    """Turn a nested dict into ``{handle: [Entry, ...]}``.

    Dict values are directories, anything else is a file.
    """
    tree = {root: []}

    def walk(parent, spec):
        entries = tree.setdefault(parent, [])
        for name, child in spec.items():
            handle = f"{parent}/{name}"
            if isinstance(child, dict):
                entries.append(Entry(name=name, handle=handle, is_directory=True))
                walk(handle, child)
            else:
                entries.append(Entry(name=name, handle=handle, is_directory=False, size_bytes=1024))

    walk(root, layout)
    return tree


class TreeLister:
    """In-memory DirectoryLister that records calls and peak concurrency."""

    def __init__(self, tree, *, delay=0.0, failures=()):
        self.tree = tree
        self.delay = delay
        self.failures = set(failures)
        self.hooks = {}
        self.calls = []
        self.peak = 0
        self._active = 0
        self._lock = threading.Lock()

    def list(self, handle):
        with self._lock:
            self.calls.append(handle)
            self._active += 1
            self.peak = max(self.peak, self._active)
        try:
            hook = self.hooks.get(handle)
            if hook is not None:
                hook()
            if self.delay:
                time.sleep(self.delay)
            if handle in self.failures:
                raise requests.ConnectionError("Connection refused")
            return list(self.tree.get(handle, []))
        finally:
            with self._lock:
                self._active -= 1


class ScriptedSink:
    """CommandSink returning scripted snapshots (or raising scripted errors)."""

    def __init__(self, *script):
        self.script = deque(script)
        self.last = PlayerStatus(title="Idle")
        self.sent = []
        self.fetches = 0
        self.fail_kinds = set()
        self.on_fetch = None
        self._lock = threading.Lock()

    def push(self, *items):
        with self._lock:
            self.script.extend(items)

    def fetch(self):
        with self._lock:
            self.fetches += 1
            item = self.script.popleft() if self.script else self.last
        if self.on_fetch is not None:
            self.on_fetch()
        if isinstance(item, BaseException):
            raise item
        self.last = item
        return item

    def send(self, kind, params):
        self.sent.append((kind, dict(params)))
        if kind in self.fail_kinds:
            raise requests.ConnectionError("Connection refused")


def status_with_tracks(current_audio=-1, current_subtitle=-1, **kwargs):
    return PlayerStatus(
        state=kwargs.pop("state", "playing"),
        title=kwargs.pop("title", "movie.mkv"),
        duration_seconds=kwargs.pop("duration_seconds", 600),
        audio_tracks=(MediaTrack(3, "English"), MediaTrack(5, "French"), MediaTrack(7, "German")),
        current_audio_track_id=current_audio,
        subtitle_tracks=(MediaTrack(-1, "Off"), MediaTrack(2, "English"), MediaTrack(4, "Spanish")),
        current_subtitle_track_id=current_subtitle,
        **kwargs,
    )


@pytest.fixture
def data_tree():
    return make_tree(
        "/data",
        {
            "Movies": {"a.mp4": None},
            "System": {"b.mp4": None},
        },
    )
