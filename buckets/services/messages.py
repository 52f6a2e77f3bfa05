"""Request and response messages exchanged with the store worker.

Every request put on the worker's inbound queue yields exactly one response on
the outbound queue, in the order the requests were accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


# Requests


@dataclass(frozen=True)
class Get:
    key: str


@dataclass(frozen=True)
class Delete:
    key: str


@dataclass(frozen=True)
class SetAuto:
    payload: bytes


@dataclass(frozen=True)
class SetAtPath:
    key: str
    payload: bytes


@dataclass(frozen=True)
class Stats:
    pass


@dataclass(frozen=True)
class Shutdown:
    """Stops the worker after every request queued before it was handled."""


Request = Union[Get, Delete, SetAuto, SetAtPath, Stats, Shutdown]


# Responses


@dataclass(frozen=True)
class Present:
    """The key was found. ``payload`` is empty for a delete."""

    payload: bytes = b""


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class TooLarge:
    size: int
    limit: int


@dataclass(frozen=True)
class Stored:
    key: str


@dataclass(frozen=True)
class StoreStats:
    count: int
    total_size: int
    max_buckets: int
    max_storage_bytes: int


@dataclass(frozen=True)
class Stopped:
    pass


@dataclass(frozen=True)
class Failed:
    """The worker hit a fatal error while handling the request and has exited."""

    error: BaseException


Response = Union[Present, NotFound, TooLarge, Stored, StoreStats, Stopped, Failed]
