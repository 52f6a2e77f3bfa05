from __future__ import annotations

import logging
import math
import queue
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import FrozenSet, Iterator, Optional

from buckets.services.eviction import plan_eviction
from buckets.services.messages import (
    Delete,
    Failed,
    Get,
    NotFound,
    Present,
    Request,
    Response,
    SetAtPath,
    SetAuto,
    Shutdown,
    Stats,
    Stopped,
    Stored,
    StoreStats,
    TooLarge,
)
from buckets.services.slugs import SlugGenerator

logger = logging.getLogger(__name__)

NEVER = math.inf


class ConfigurationError(ValueError):
    pass


class StoreInvariantError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoreConfig:
    charset: str
    slug_size: int
    ttl_s: float
    max_buckets: int
    max_storage_bytes: int
    seed: Optional[int] = None
    # Keys the service answers itself; never generated as slugs.
    reserved_keys: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if not self.charset:
            raise ConfigurationError("charset must not be empty")
        if self.slug_size < 1:
            raise ConfigurationError("slug size must be at least 1")
        if self.ttl_s < 0:
            raise ConfigurationError("ttl must not be negative")
        if self.max_buckets < 1:
            raise ConfigurationError("max buckets must be at least 1")
        if self.max_storage_bytes < 1:
            raise ConfigurationError("max storage size must be positive")
        slugs = SlugGenerator(charset=self.charset, size=self.slug_size, reserved=self.reserved_keys)
        if slugs.keyspace <= self.max_buckets:
            raise ConfigurationError("slug size and charset too small for max number of buckets")


@dataclass(frozen=True)
class Entry:
    key: str
    payload: bytes
    size: int
    expires_at: float


class Store:
    """Entries in insertion order, which is also expiry and eviction order.

    Not thread-safe: only the owning worker may touch it.
    """

    def __init__(self, config: StoreConfig) -> None:
        self.config = config
        self.slugs = SlugGenerator(
            charset=config.charset,
            size=config.slug_size,
            seed=config.seed,
            reserved=config.reserved_keys,
        )
        self._entries: OrderedDict[str, Entry] = OrderedDict()
        self.total_size = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries.values())

    def keys(self) -> list[str]:
        return list(self._entries)

    def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return entry.payload

    def admissible(self, size: int) -> bool:
        return size <= self.config.max_storage_bytes

    def insert(self, key: str, payload: bytes) -> str:
        size = len(payload)
        if not self.admissible(size):
            raise StoreInvariantError(f"payload of {size} bytes exceeds the storage limit")

        if key in self._entries:
            self.remove(key)

        evict = plan_eviction(
            (entry.size for entry in self._entries.values()),
            count=len(self._entries),
            total_size=self.total_size,
            incoming=size,
            max_buckets=self.config.max_buckets,
            max_storage_bytes=self.config.max_storage_bytes,
        )
        if evict:
            logger.debug("Evicting %d oldest entries to fit %d bytes", evict, size)
            self.drop_oldest(evict)

        ttl = self.config.ttl_s
        expires_at = time.monotonic() + ttl if ttl else NEVER
        self._entries[key] = Entry(key=key, payload=payload, size=size, expires_at=expires_at)
        self.total_size += size
        return key

    def insert_auto(self, payload: bytes) -> str:
        return self.insert(self.slugs.generate(self._entries), payload)

    def remove(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            raise StoreInvariantError(f"could not delete non existing key {key!r}")
        self.total_size -= entry.size

    def drop_oldest(self, n: int) -> None:
        for _ in range(n):
            _, entry = self._entries.popitem(last=False)
            self.total_size -= entry.size

    def next_expiry(self) -> Optional[float]:
        oldest = next(iter(self._entries.values()), None)
        if oldest is None:
            return None
        return oldest.expires_at

    def expire(self, now: float) -> int:
        """Drop entries whose deadline has passed; returns how many went."""
        dropped = 0
        while True:
            deadline = self.next_expiry()
            if deadline is None or deadline > now:
                return dropped
            self.drop_oldest(1)
            dropped += 1

    def stats(self) -> StoreStats:
        return StoreStats(
            count=len(self._entries),
            total_size=self.total_size,
            max_buckets=self.config.max_buckets,
            max_storage_bytes=self.config.max_storage_bytes,
        )


class StoreWorker:
    """Owns a :class:`Store` on a dedicated thread.

    Requests arrive on ``inbound`` and each produces exactly one response on
    ``outbound``, in arrival order. Nothing correlates a response with its
    caller, so callers must hold one lock across put-then-get
    (see :class:`buckets.services.gateway.StoreGateway`).
    """

    def __init__(self, config: StoreConfig) -> None:
        self.store = Store(config)
        self.inbound: queue.Queue[Request] = queue.Queue()
        self.outbound: queue.Queue[Response] = queue.Queue()
        self.failure: Optional[BaseException] = None
        self.stopped = False
        self._thread = threading.Thread(target=self._run, name="store-worker", daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self.stopped and self.failure is None

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def handle(self, request: Request) -> Response:
        store = self.store
        if isinstance(request, Get):
            payload = store.get(request.key)
            if payload is None:
                return NotFound()
            return Present(payload)
        elif isinstance(request, Delete):
            if request.key not in store:
                return NotFound()
            store.remove(request.key)
            return Present()
        elif isinstance(request, (SetAuto, SetAtPath)):
            size = len(request.payload)
            if not store.admissible(size):
                return TooLarge(size=size, limit=store.config.max_storage_bytes)
            if isinstance(request, SetAtPath):
                key = store.insert(request.key, request.payload)
            else:
                key = store.insert_auto(request.payload)
            return Stored(key)
        elif isinstance(request, Stats):
            return store.stats()
        raise StoreInvariantError(f"unknown store request: {request!r}")

    def _wait_timeout(self) -> Optional[float]:
        deadline = self.store.next_expiry()
        if deadline is None or deadline == NEVER:
            return None
        remaining = max(0.0, deadline - time.monotonic())
        return min(remaining, threading.TIMEOUT_MAX)

    def _expire(self) -> None:
        dropped = self.store.expire(time.monotonic())
        if dropped:
            logger.debug("Expired %d entries", dropped)

    def _run(self) -> None:
        config = self.store.config
        logger.info(
            "Store worker started (ttl=%ss, max_buckets=%d, max_storage_bytes=%d)",
            config.ttl_s,
            config.max_buckets,
            config.max_storage_bytes,
        )
        while True:
            self._expire()
            try:
                request = self.inbound.get(timeout=self._wait_timeout())
            except queue.Empty:
                continue

            if isinstance(request, Shutdown):
                self.stopped = True
                self.outbound.put(Stopped())
                logger.info("Store worker stopped with %d entries", len(self.store))
                return

            try:
                self._expire()
                response = self.handle(request)
            except Exception as exc:
                logger.critical("Store worker failed on %r", request, exc_info=True)
                self.failure = exc
                self.outbound.put(Failed(exc))
                return
            self.outbound.put(response)
