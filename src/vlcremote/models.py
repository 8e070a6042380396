from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from vlcremote.errors import CommandError

# VLC reports -1 for "no selection / unknown" in its track fields.
SENTINEL_TRACK_ID = -1

# 0-512 scale, 256 == 100%.
VOLUME_RAW_DEFAULT = 256
VOLUME_RAW_MAX = 512

VIDEO_EXTENSIONS = frozenset(
    ["mp4", "mkv", "avi", "mov", "wmv", "flv", "webm", "m4v", "mpg", "mpeg", "ts", "m2ts", "vob", "3gp"]
)
AUDIO_EXTENSIONS = frozenset(["mp3", "flac", "wav", "aac", "m4a", "ogg", "wma"])


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_str(value: Any, default: str) -> str:
    if value is None:
        return default
    s = str(value).strip()
    return s or default


@dataclass(frozen=True)
class Entry:
    name: str
    handle: str
    is_directory: bool
    size_bytes: int = 0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Entry":
        """Build an entry from an already-decoded browse record.

        VLC's browse listing carries ``name``, ``uri`` (older builds use
        ``path``), ``type`` ("dir" or "file") and ``size``.
        """
        name = _as_str(record.get("name"), "Unknown")
        handle = str(record.get("uri") or record.get("path") or "")
        is_dir = str(record.get("type") or "file").strip().lower() == "dir"
        size = max(0, _as_int(record.get("size"), 0))
        return cls(name=name, handle=handle, is_directory=is_dir, size_bytes=size)

    @property
    def extension(self) -> str:
        if self.is_directory or "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[1].lower()

    @property
    def is_video(self) -> bool:
        return self.extension in VIDEO_EXTENSIONS

    @property
    def is_audio(self) -> bool:
        return self.extension in AUDIO_EXTENSIONS

    @property
    def is_media(self) -> bool:
        return self.is_video or self.is_audio

    @property
    def formatted_size(self) -> str:
        if self.is_directory:
            return ""
        size = self.size_bytes
        if size < 1024:
            return f"{size} B"
        if size < 1024 * 1024:
            return f"{size / 1024:.1f} KB"
        if size < 1024 * 1024 * 1024:
            return f"{size / (1024 * 1024):.1f} MB"
        return f"{size / (1024 * 1024 * 1024):.2f} GB"


class Priority(enum.IntEnum):
    HIGH = 0
    NORMAL = 1
    LOW = 2


@dataclass(frozen=True)
class CrawlTask:
    handle: str
    depth: int
    priority: Priority = Priority.NORMAL


@dataclass
class CrawlReport:
    """Summary of one crawl invocation."""

    listed: int = 0
    failed: int = 0
    matches: int = 0
    batches: int = 0
    cancelled: bool = False


@dataclass(frozen=True)
class MediaTrack:
    id: int
    name: str


def _tracks(raw: Any) -> Tuple[MediaTrack, ...]:
    if not raw:
        return ()
    out = []
    for item in raw:
        if isinstance(item, MediaTrack):
            out.append(item)
            continue
        if not isinstance(item, Mapping):
            continue
        tid = _as_int(item.get("id"), SENTINEL_TRACK_ID)
        out.append(MediaTrack(id=tid, name=_as_str(item.get("name"), f"Track {tid}")))
    return tuple(out)


def _format_duration(seconds: int) -> str:
    if seconds < 0:
        return "0:00"
    hours, rem = divmod(int(seconds), 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


@dataclass(frozen=True)
class PlayerStatus:
    state: str = "stopped"
    position_seconds: int = 0
    duration_seconds: int = 0
    title: str = "Unknown"
    volume_raw: int = VOLUME_RAW_DEFAULT
    rate: float = 1.0
    audio_tracks: Tuple[MediaTrack, ...] = field(default_factory=tuple)
    current_audio_track_id: int = SENTINEL_TRACK_ID
    subtitle_tracks: Tuple[MediaTrack, ...] = field(default_factory=tuple)
    current_subtitle_track_id: int = SENTINEL_TRACK_ID
    fullscreen: bool = False

    @classmethod
    def empty(cls) -> "PlayerStatus":
        return cls(title="Not Connected")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PlayerStatus":
        """Tolerant factory: missing or garbled fields fall back to defaults.

        Accepts both the attribute names of this class and the short names
        of VLC's status document (``time``, ``length``, ``volume``,
        ``currentAudioTrack``...).
        """

        def pick(*keys: str) -> Any:
            for k in keys:
                if k in data and data[k] is not None:
                    return data[k]
            return None

        state = _as_str(pick("state"), "stopped").lower()
        if state not in ("playing", "paused", "stopped"):
            state = "stopped"
        return cls(
            state=state,
            position_seconds=max(0, _as_int(pick("position_seconds", "time"), 0)),
            duration_seconds=max(0, _as_int(pick("duration_seconds", "length"), 0)),
            title=_as_str(pick("title"), "Unknown"),
            volume_raw=_as_int(pick("volume_raw", "volume"), VOLUME_RAW_DEFAULT),
            rate=_as_float(pick("rate"), 1.0),
            audio_tracks=_tracks(pick("audio_tracks", "audioTracks")),
            current_audio_track_id=_as_int(
                pick("current_audio_track_id", "currentAudioTrack"), SENTINEL_TRACK_ID
            ),
            subtitle_tracks=_tracks(pick("subtitle_tracks", "subtitleTracks")),
            current_subtitle_track_id=_as_int(
                pick("current_subtitle_track_id", "currentSubtitleTrack"), SENTINEL_TRACK_ID
            ),
            fullscreen=pick("fullscreen") in (True, "true", "1", 1),
        )

    def with_changes(self, **changes: Any) -> "PlayerStatus":
        return replace(self, **changes)

    @property
    def is_playing(self) -> bool:
        return self.state == "playing"

    @property
    def has_media(self) -> bool:
        return (
            self.duration_seconds > 0
            or self.position_seconds > 0
            or self.state in ("playing", "paused")
        )

    @property
    def progress(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.position_seconds / self.duration_seconds

    @property
    def volume_percent(self) -> int:
        pct = round(self.volume_raw / VOLUME_RAW_DEFAULT * 100)
        return max(0, min(200, pct))

    @property
    def formatted_time(self) -> str:
        return _format_duration(self.position_seconds)

    @property
    def formatted_length(self) -> str:
        return _format_duration(self.duration_seconds)

    @property
    def time_display(self) -> str:
        return f"{self.formatted_time} / {self.formatted_length}"

    @property
    def speed_display(self) -> str:
        if self.rate == 1.0:
            return "Normal"
        return f"{self.rate:.2f}x"


def percent_to_volume_raw(percent: float) -> int:
    raw = round(percent / 100 * VOLUME_RAW_DEFAULT)
    return max(0, min(VOLUME_RAW_MAX, raw))


class TrackKind(enum.Enum):
    AUDIO = "audio"
    SUBTITLE = "subtitle"

    @property
    def current_field(self) -> str:
        return f"current_{self.value}_track_id"

    @property
    def tracks_field(self) -> str:
        return f"{self.value}_tracks"

    def current_id(self, status: PlayerStatus) -> int:
        return getattr(status, self.current_field)

    def tracks(self, status: PlayerStatus) -> Tuple[MediaTrack, ...]:
        return getattr(status, self.tracks_field)

    def has_track(self, status: PlayerStatus, track_id: int) -> bool:
        return any(t.id == track_id for t in self.tracks(status))

    def with_current(self, status: PlayerStatus, track_id: int) -> PlayerStatus:
        return replace(status, **{self.current_field: track_id})


@dataclass(frozen=True)
class PendingIntent:
    kind: TrackKind
    value: int
    # Monotonic issue order; lets a poll tell intents newer than its fetch.
    sequence: int = 0


class CommandKind(str, enum.Enum):
    TOGGLE_PAUSE = "pl_pause"
    VOLUME = "volume"
    SEEK = "seek"
    FULLSCREEN = "fullscreen"
    NEXT = "pl_next"
    PREVIOUS = "pl_previous"
    AUDIO_TRACK = "audio_track"
    SUBTITLE_TRACK = "subtitle_track"
    RATE = "rate"
    ASPECT_RATIO = "aspect_ratio"
    PLAY_INPUT = "in_play"
    ENQUEUE_INPUT = "in_enqueue"
    EMPTY_PLAYLIST = "pl_empty"


@dataclass(frozen=True)
class CommandResult:
    kind: CommandKind
    ok: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_error(self) -> None:
        """Raise ``CommandError`` when the command failed."""
        if not self.ok:
            raise CommandError(self.kind, self.error or "command failed")


def entries_from_records(records: Iterable[Mapping[str, Any]]) -> List[Entry]:
    out = []
    for rec in records or []:
        if not isinstance(rec, Mapping) or rec.get("name") is None:
            continue
        out.append(Entry.from_record(rec))
    return out


def command_params(**params: Any) -> Dict[str, str]:
    return {k: str(v) for k, v in params.items() if v is not None}
