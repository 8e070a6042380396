from __future__ import annotations

import logging
import time
from typing import Callable, Iterator, List, Optional

from vlcremote.config import Settings
from vlcremote.errors import CommandError, NotConnectedError, describe_error, is_transient
from vlcremote.interfaces import CommandSink, DirectoryLister
from vlcremote.models import (
    CommandKind,
    CommandResult,
    CrawlReport,
    Entry,
    PlayerStatus,
    TrackKind,
    command_params,
    percent_to_volume_raw,
)
from vlcremote.search.crawler import CancelToken, Crawler
from vlcremote.search.stream import iter_search
from vlcremote.state.poller import ConnectionState, PollScheduler
from vlcremote.state.reconciler import StateReconciler

_LOGGER = logging.getLogger(__name__)


class RemoteController:
    """Command side of the remote.

    Each command updates the displayed status first, then talks to VLC.
    Failures come back as a ``CommandResult`` and trigger an immediate poll:
    the next snapshot corrects whatever the optimistic update got wrong.
    """

    def __init__(
        self,
        sink: Optional[CommandSink],
        reconciler: StateReconciler,
        scheduler: PollScheduler,
        *,
        lister: Optional[DirectoryLister] = None,
        crawler: Optional[Crawler] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.sink = sink
        self.reconciler = reconciler
        self.scheduler = scheduler
        self.lister = lister
        self.settings = settings or Settings()
        self.crawler = crawler
        if self.crawler is None and lister is not None:
            self.crawler = Crawler(
                lister,
                media_keywords=self.settings.media_folder_keywords,
                system_keywords=self.settings.system_folder_keywords,
            )
        self.aspect_ratio = "default"
        self._sleep = sleep

    @property
    def status(self) -> PlayerStatus:
        return self.reconciler.current_status

    @property
    def connection_state(self) -> ConnectionState:
        return self.scheduler.connection_state

    # Connection lifecycle

    def connect(self) -> bool:
        if self.sink is None:
            return False
        return self.scheduler.connect()

    def close(self) -> None:
        self.scheduler.disconnect()
        self.sink = None

    def pause_polling(self) -> None:
        self.scheduler.pause()

    def resume_polling(self) -> None:
        self.scheduler.resume()

    def refresh(self) -> bool:
        return self.scheduler.manual_refresh()

    # Plumbing

    @staticmethod
    def _failed(kind: CommandKind, exc: BaseException) -> CommandResult:
        return CommandResult(kind=kind, ok=False, error=describe_error(exc))

    def _not_connected(self, kind: CommandKind) -> CommandResult:
        return self._failed(kind, NotConnectedError("Not connected"))

    def _send(self, kind: CommandKind, **params) -> CommandResult:
        sink = self.sink
        if sink is None:
            return self._not_connected(kind)
        try:
            sink.send(kind, command_params(**params))
        except Exception as exc:
            if is_transient(exc):
                _LOGGER.debug("%s failed: %s", kind.value, exc)
            else:
                _LOGGER.warning("%s failed: %r", kind.value, exc)
            return self._failed(kind, exc)
        return CommandResult(kind=kind, ok=True)

    def _recover(self, result: CommandResult) -> CommandResult:
        if not result.ok and self.sink is not None:
            self.refresh()
        return result

    def _settle_and_refresh(self, result: CommandResult, delay: float) -> CommandResult:
        if result.ok and delay > 0:
            self._sleep(delay)
        if self.sink is not None:
            self.refresh()
        return result

    # Playback

    def toggle_play_pause(self) -> CommandResult:
        if self.sink is None:
            return self._not_connected(CommandKind.TOGGLE_PAUSE)
        new_state = "paused" if self.status.is_playing else "playing"
        self.reconciler.apply_local(state=new_state)
        return self._recover(self._send(CommandKind.TOGGLE_PAUSE))

    def set_volume(self, percent: float) -> CommandResult:
        if self.sink is None:
            return self._not_connected(CommandKind.VOLUME)
        raw = percent_to_volume_raw(percent)
        self.reconciler.apply_local(volume_raw=raw)
        return self._recover(self._send(CommandKind.VOLUME, val=raw))

    def seek_to(self, seconds: int) -> CommandResult:
        result = self._send(CommandKind.SEEK, val=int(seconds))
        if result.ok:
            self.reconciler.apply_local(position_seconds=max(0, int(seconds)))
        return self._recover(result)

    def _seek_by(self, delta: int) -> CommandResult:
        if self.sink is None:
            return self._not_connected(CommandKind.SEEK)
        status = self.status
        target = max(0, min(status.duration_seconds, status.position_seconds + delta))
        self.reconciler.apply_local(position_seconds=target)
        sign = "+" if delta >= 0 else ""
        return self._recover(self._send(CommandKind.SEEK, val=f"{sign}{delta}s"))

    def seek_forward(self) -> CommandResult:
        return self._seek_by(int(self.settings.seek_step_s))

    def seek_backward(self) -> CommandResult:
        return self._seek_by(-int(self.settings.seek_step_s))

    def toggle_fullscreen(self) -> CommandResult:
        return self._settle_and_refresh(self._send(CommandKind.FULLSCREEN), 0)

    def play_next(self) -> CommandResult:
        return self._settle_and_refresh(self._send(CommandKind.NEXT), self.settings.command_settle_s)

    def play_previous(self) -> CommandResult:
        return self._settle_and_refresh(self._send(CommandKind.PREVIOUS), self.settings.command_settle_s)

    def play_file(self, uri: str) -> CommandResult:
        return self._settle_and_refresh(
            self._send(CommandKind.PLAY_INPUT, input=uri), self.settings.play_settle_s
        )

    def play_playlist(self, uris: List[str]) -> CommandResult:
        """Replace VLC's playlist with ``uris`` and start the first one."""
        if not uris:
            return CommandResult(kind=CommandKind.PLAY_INPUT, ok=True)
        try:
            self._send(CommandKind.EMPTY_PLAYLIST).raise_for_error()
            self._send(CommandKind.PLAY_INPUT, input=uris[0]).raise_for_error()
            for uri in uris[1:]:
                self._send(CommandKind.ENQUEUE_INPUT, input=uri).raise_for_error()
            result = CommandResult(kind=CommandKind.PLAY_INPUT, ok=True)
        except CommandError as exc:
            _LOGGER.info("playlist stopped at %s: %s", exc.kind, exc.message)
            result = CommandResult(kind=exc.kind, ok=False, error=exc.message)
        return self._settle_and_refresh(result, self.settings.play_settle_s)

    # Tracks, speed, picture

    def set_audio_track(self, track_id: int) -> CommandResult:
        if self.sink is None:
            return self._not_connected(CommandKind.AUDIO_TRACK)
        self.reconciler.apply_optimistic(TrackKind.AUDIO, track_id)
        return self._recover(self._send(CommandKind.AUDIO_TRACK, val=int(track_id)))

    def set_subtitle_track(self, track_id: int) -> CommandResult:
        """Select a subtitle track; -1 turns subtitles off."""
        if self.sink is None:
            return self._not_connected(CommandKind.SUBTITLE_TRACK)
        self.reconciler.apply_optimistic(TrackKind.SUBTITLE, track_id)
        return self._recover(self._send(CommandKind.SUBTITLE_TRACK, val=int(track_id)))

    def set_playback_rate(self, rate: float) -> CommandResult:
        if self.sink is None:
            return self._not_connected(CommandKind.RATE)
        self.reconciler.apply_local(rate=float(rate))
        return self._recover(self._send(CommandKind.RATE, val=float(rate)))

    def set_aspect_ratio(self, ratio: str) -> CommandResult:
        if self.sink is None:
            return self._not_connected(CommandKind.ASPECT_RATIO)
        self.aspect_ratio = ratio
        return self._recover(self._send(CommandKind.ASPECT_RATIO, val=ratio))

    # Files

    def browse(self, handle: str) -> List[Entry]:
        if self.lister is None:
            return []
        try:
            return list(self.lister.list(handle))
        except Exception as exc:
            _LOGGER.debug("browse %s failed: %s", handle, exc)
            return []

    def search(
        self,
        root: str,
        query: str,
        on_batch: Callable[[List[Entry]], None],
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> CrawlReport:
        if self.crawler is None:
            return CrawlReport()
        return self.crawler.run(
            root,
            query,
            on_batch,
            cancel_token=cancel_token,
            max_depth=self.settings.search_max_depth,
            max_concurrency=self.settings.search_max_concurrency,
        )

    def iter_search(
        self, root: str, query: str, *, cancel_token: Optional[CancelToken] = None
    ) -> Iterator[List[Entry]]:
        if self.crawler is None:
            return iter(())
        return iter_search(
            self.crawler,
            root,
            query,
            max_buffered_batches=self.settings.search_buffered_batches,
            cancel_token=cancel_token,
            max_depth=self.settings.search_max_depth,
            max_concurrency=self.settings.search_max_concurrency,
        )


def open_remote(
    sink: CommandSink,
    lister: Optional[DirectoryLister] = None,
    *,
    settings: Optional[Settings] = None,
) -> RemoteController:
    """Wire reconciler, poll scheduler and crawler around the collaborators."""
    settings = settings or Settings()
    reconciler = StateReconciler(sink)
    scheduler = PollScheduler(reconciler, interval=settings.poll_interval_s)
    return RemoteController(sink, reconciler, scheduler, lister=lister, settings=settings)
