"""Remote-control core for VLC's HTTP interface."""

__version__ = "0.1.0"
