from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from vlcremote.interfaces import CommandSink
from vlcremote.models import SENTINEL_TRACK_ID, PendingIntent, PlayerStatus, TrackKind

_LOGGER = logging.getLogger(__name__)

StatusListener = Callable[[PlayerStatus], None]


def coerce_status(raw: Union[PlayerStatus, Mapping[str, Any], None]) -> PlayerStatus:
    if isinstance(raw, PlayerStatus):
        return raw
    if isinstance(raw, Mapping):
        return PlayerStatus.from_mapping(raw)
    return PlayerStatus.from_mapping({})


class StateReconciler:
    """Single source of player status for the UI.

    Two writers feed it: optimistic updates made the moment the user acts,
    and snapshots polled from VLC. VLC's status sometimes reports -1 for the
    current audio/subtitle track for a cycle or two after a change; while a
    track intent is pending, such a snapshot keeps showing the intended
    track instead of flickering back to "none". The first snapshot that
    names a concrete track wins and clears the intent.

    ``poll()`` is single-flight. Status and intents are only touched under
    ``_state_lock`` so optimistic updates made during a fetch are not lost.
    Publishing a status and notifying listeners happen together under
    ``_notify_lock``, so listeners see statuses in publication order.
    """

    def __init__(self, sink: Optional[CommandSink], *, initial: Optional[PlayerStatus] = None) -> None:
        self.sink = sink
        self._status = initial or PlayerStatus.empty()
        self._intents: Dict[TrackKind, PendingIntent] = {}
        self._sequence = 0
        self._state_lock = threading.RLock()
        self._poll_lock = threading.Lock()
        # Reentrant: listeners may apply local changes from the callback.
        self._notify_lock = threading.RLock()
        self._listeners: List[StatusListener] = []

    @property
    def current_status(self) -> PlayerStatus:
        with self._state_lock:
            return self._status

    def pending_intent(self, kind: TrackKind) -> Optional[PendingIntent]:
        with self._state_lock:
            return self._intents.get(kind)

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, status: PlayerStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                _LOGGER.exception("status listener failed")

    def apply_optimistic(self, kind: TrackKind, value: int) -> PendingIntent:
        """Show ``value`` as the current track of ``kind`` right away."""
        with self._notify_lock:
            with self._state_lock:
                self._sequence += 1
                intent = PendingIntent(kind=kind, value=int(value), sequence=self._sequence)
                self._intents[kind] = intent
                self._status = kind.with_current(self._status, intent.value)
                status = self._status
            _LOGGER.debug("optimistic %s track -> %d", kind.value, intent.value)
            self._notify(status)
        return intent

    def apply_local(self, **changes: Any) -> PlayerStatus:
        """Optimistically replace plain status fields (volume, state, position...)."""
        with self._notify_lock:
            with self._state_lock:
                self._status = self._status.with_changes(**changes)
                status = self._status
            self._notify(status)
        return status

    def poll(self) -> PlayerStatus:
        """Fetch a snapshot, reconcile it with pending intents and publish it.

        Fetch failures propagate; the previous status is left untouched.
        """
        if self.sink is None:
            raise RuntimeError("no command sink attached")
        with self._poll_lock:
            with self._state_lock:
                fetch_sequence = self._sequence
            snapshot = coerce_status(self.sink.fetch())
            with self._notify_lock:
                with self._state_lock:
                    status = self._reconcile(snapshot, fetch_sequence)
                    self._status = status
                self._notify(status)
            return status

    def _reconcile(self, snapshot: PlayerStatus, fetch_sequence: int) -> PlayerStatus:
        status = snapshot
        for kind, intent in list(self._intents.items()):
            reported = kind.current_id(snapshot)
            if intent.sequence > fetch_sequence:
                # Issued while the fetch was in flight; the snapshot predates it.
                status = kind.with_current(status, intent.value)
                continue
            if reported == intent.value:
                del self._intents[kind]
                _LOGGER.debug("%s track %d confirmed", kind.value, reported)
            elif reported != SENTINEL_TRACK_ID:
                del self._intents[kind]
                _LOGGER.debug("%s track %d overridden by remote %d", kind.value, intent.value, reported)
            elif kind.has_track(snapshot, intent.value):
                status = kind.with_current(status, intent.value)
        return status

    def reset(self) -> None:
        with self._notify_lock:
            with self._state_lock:
                self._intents.clear()
                self._status = PlayerStatus.empty()
                status = self._status
            self._notify(status)
