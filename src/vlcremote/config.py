import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import List, Optional

from platformdirs import user_config_dir

DEFAULT_MEDIA_FOLDER_KEYWORDS = ["user", "movie", "video", "download", "music", "desktop"]
DEFAULT_SYSTEM_FOLDER_KEYWORDS = ["windows", "program files", "appdata", "programdata", "$recycle"]


@dataclass
class Settings:
    poll_interval_s: float = 1.5

    search_max_depth: int = 20
    search_max_concurrency: int = 5
    # Match batches held for a slow consumer before the crawl blocks.
    search_buffered_batches: int = 16

    # Folder-name keywords used to prioritize the search. Media-looking
    # folders are listed first, system folders last.
    media_folder_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_MEDIA_FOLDER_KEYWORDS))
    system_folder_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_SYSTEM_FOLDER_KEYWORDS))

    seek_step_s: int = 10

    # Time VLC needs after a track change before status reflects it.
    command_settle_s: float = 0.3
    play_settle_s: float = 0.5

    log_level: str = "INFO"
    log_file: str = ""


def config_path() -> Path:
    cfg_dir = Path(user_config_dir("vlcremote"))
    cfg_dir.mkdir(parents=True, exist_ok=True)
    return cfg_dir / "config.json"


def load_settings(path: Optional[Path] = None) -> Settings:
    path = path or config_path()
    if not path.exists():
        return Settings()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return Settings(**{k: v for k, v in raw.items() if k in Settings.__annotations__})
    except Exception:
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> None:
    path = path or config_path()
    path.write_text(json.dumps(asdict(settings), indent=2) + "\n", encoding="utf-8")
