"""Contracts for the collaborators that talk to VLC.

Implementations own the transport (HTTP, auth, timeouts) and the decoding
of VLC's responses; the core only sees decoded values.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Protocol, Union

from vlcremote.models import CommandKind, Entry, PlayerStatus


class DirectoryLister(Protocol):
    def list(self, handle: str) -> List[Entry]:
        """Return the entries of one remote directory, or raise."""
        ...


class CommandSink(Protocol):
    def fetch(self) -> Union[PlayerStatus, Mapping[str, Any]]:
        """Return a fresh status snapshot, or raise."""
        ...

    def send(self, kind: CommandKind, params: Dict[str, str]) -> None:
        """Issue one remote command, raising when VLC rejects it."""
        ...
