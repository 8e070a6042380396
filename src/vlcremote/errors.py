from __future__ import annotations

from typing import Optional

import requests


class VlcRemoteError(RuntimeError):
    pass


class NotConnectedError(VlcRemoteError):
    pass


class CommandError(VlcRemoteError):
    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class CrawlError(VlcRemoteError):
    pass


_TRANSIENT = (
    requests.Timeout,
    requests.ConnectionError,
    TimeoutError,
    ConnectionError,
)


def is_transient(exc: BaseException) -> bool:
    """True for failures that are expected to go away on their own."""
    return isinstance(exc, _TRANSIENT)


def _status_code(exc: BaseException) -> Optional[int]:
    resp = getattr(exc, "response", None)
    code = getattr(resp, "status_code", None)
    return code if isinstance(code, int) else None


def describe_error(exc: BaseException) -> str:
    """Turn a collaborator failure into a message fit for the user."""
    if isinstance(exc, VlcRemoteError) and str(exc):
        return str(exc)

    code = _status_code(exc)
    if code == 401:
        return "Wrong password. Check VLC Web Interface settings."
    if code is not None:
        return f"VLC returned error: {code}"

    if isinstance(exc, (requests.Timeout, TimeoutError)):
        return "Connection timed out. Is VLC running?"

    if isinstance(exc, (requests.ConnectionError, ConnectionError)):
        msg = str(exc)
        if "Connection refused" in msg or isinstance(exc, ConnectionRefusedError):
            return "VLC not running or Web Interface not enabled"
        if "No route to host" in msg or "Network is unreachable" in msg:
            return "Cannot reach device. Check your network connection."
        if "Connection reset" in msg or isinstance(exc, ConnectionResetError):
            return "Connection interrupted. Try again."
        return "Network error. Check IP address and ensure VLC is running."

    return "Cannot reach VLC. Check IP address and network."
