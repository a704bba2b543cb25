"""Time sync domain - remote-anchored monotonic UTC clock."""

from .service import TimeAnchor, TimeSync
from .source import HttpTimeSource, TimeSource

__all__ = [
    "TimeSync",
    "TimeAnchor",
    "TimeSource",
    "HttpTimeSource",
]
