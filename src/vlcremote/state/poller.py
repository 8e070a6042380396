from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, List, Optional

from vlcremote.errors import describe_error, is_transient
from vlcremote.interfaces import CommandSink
from vlcremote.state.reconciler import StateReconciler, coerce_status

_LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 1.5


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


StateListener = Callable[[ConnectionState, str], None]


def probe_connection(sink: CommandSink) -> Optional[str]:
    """Probe VLC once. Returns None on success, else a message for the user."""
    try:
        coerce_status(sink.fetch())
    except Exception as exc:
        return describe_error(exc)
    return None


class PollScheduler:
    """Refreshes the reconciler on a fixed cadence while connected.

    Only the connect-time probe can put the scheduler into ``ERROR``; once
    connected, failed polls are logged and the last good status is kept.
    Timer firings that happen while paused are dropped, and ``resume()``
    runs a single fresh poll instead of a backlog.
    """

    def __init__(self, reconciler: StateReconciler, *, interval: float = DEFAULT_POLL_INTERVAL_S) -> None:
        self.reconciler = reconciler
        self.interval = float(interval)
        self._lock = threading.Lock()
        # Held across a state change and its listener calls.
        self._notify_lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._error_message = ""
        self._paused = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._wake: Optional[threading.Event] = None
        self._state_listeners: List[StateListener] = []

    @property
    def connection_state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def error_message(self) -> str:
        with self._lock:
            return self._error_message

    @property
    def is_connected(self) -> bool:
        return self.connection_state is ConnectionState.CONNECTED

    @property
    def is_connecting(self) -> bool:
        return self.connection_state is ConnectionState.CONNECTING

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    @property
    def is_running(self) -> bool:
        with self._lock:
            thread = self._thread
        return thread is not None and thread.is_alive()

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _set_state(self, state: ConnectionState, message: str = "") -> None:
        with self._notify_lock:
            with self._lock:
                changed = state is not self._state or message != self._error_message
                self._state = state
                self._error_message = message
            if not changed:
                return
            _LOGGER.info("connection %s%s", state.value, f": {message}" if message else "")
            for listener in list(self._state_listeners):
                try:
                    listener(state, message)
                except Exception:
                    _LOGGER.exception("connection state listener failed")

    def connect(self) -> bool:
        """Probe VLC and start polling when it answers.

        The probe is the first poll; the timer's next one comes an interval later.
        """
        self.stop()
        self._set_state(ConnectionState.CONNECTING)
        try:
            self.reconciler.poll()
        except Exception as exc:
            self._set_state(ConnectionState.ERROR, describe_error(exc))
            return False
        self._set_state(ConnectionState.CONNECTED)
        self.start(poll_now=False)
        return True

    def disconnect(self) -> None:
        self.stop()
        self.reconciler.reset()
        self._set_state(ConnectionState.DISCONNECTED)

    def start(self, *, poll_now: bool = True) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            stop_event = threading.Event()
            wake = threading.Event()
            if poll_now:
                wake.set()
            self._stop_event = stop_event
            self._wake = wake
            self._thread = threading.Thread(
                target=self._run,
                args=(stop_event, wake),
                name="vlcremote-poll",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            thread, stop_event, wake = self._thread, self._stop_event, self._wake
            self._thread = None
            self._stop_event = None
            self._wake = None
        if thread is None:
            return
        stop_event.set()
        wake.set()
        if thread is not threading.current_thread():
            thread.join()

    def pause(self) -> None:
        with self._lock:
            self._paused = True

    def resume(self) -> None:
        with self._lock:
            self._paused = False
            wake = self._wake
            connected = self._state is ConnectionState.CONNECTED
        if wake is not None and connected:
            wake.set()

    def manual_refresh(self) -> bool:
        """Poll now, outside the timer. Returns whether a fresh status arrived."""
        if self.connection_state is ConnectionState.DISCONNECTED:
            return False
        return self._poll_once()

    def _run(self, stop_event: threading.Event, wake: threading.Event) -> None:
        while True:
            wake.wait(self.interval)
            wake.clear()
            if stop_event.is_set():
                return
            if self.is_paused:
                continue
            self._poll_once()

    def _poll_once(self) -> bool:
        try:
            self.reconciler.poll()
        except Exception as exc:
            if is_transient(exc):
                _LOGGER.debug("poll failed: %s", exc)
            else:
                _LOGGER.warning("poll failed: %r", exc)
            return False
        if self.connection_state is ConnectionState.ERROR:
            self._set_state(ConnectionState.CONNECTED)
            self.start(poll_now=False)
        return True
