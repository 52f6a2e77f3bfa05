from __future__ import annotations

import logging
import threading
from typing import Optional, Union

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
from buckets.services.store import StoreConfig, StoreWorker

logger = logging.getLogger(__name__)


class StoreUnavailable(RuntimeError):
    pass


class StoreGateway:
    """Thread-safe entry point to a :class:`StoreWorker`.

    The worker answers requests strictly in order without saying whose request
    an answer belongs to, so submit-and-await is one critical section.
    """

    def __init__(self, worker: StoreWorker) -> None:
        self.worker = worker
        self._lock = threading.Lock()

    @classmethod
    def start(cls, config: StoreConfig) -> "StoreGateway":
        worker = StoreWorker(config)
        worker.start()
        return cls(worker)

    @property
    def available(self) -> bool:
        return self.worker.running

    def call(self, request: Request) -> Response:
        with self._lock:
            self._ensure_available()
            self.worker.inbound.put(request)
            response = self.worker.outbound.get()
        if isinstance(response, Failed):
            raise StoreUnavailable("store worker failed") from response.error
        return response

    def get(self, key: str) -> Union[Present, NotFound]:
        return self.call(Get(key))

    def delete(self, key: str) -> Union[Present, NotFound]:
        return self.call(Delete(key))

    def set(self, payload: bytes, key: Optional[str] = None) -> Union[Stored, TooLarge]:
        if key is None:
            return self.call(SetAuto(payload))
        return self.call(SetAtPath(key, payload))

    def stats(self) -> StoreStats:
        return self.call(Stats())

    def close(self, timeout: Optional[float] = 5.0) -> None:
        with self._lock:
            if not self.worker.running:
                return
            self.worker.inbound.put(Shutdown())
            response = self.worker.outbound.get()
        if not isinstance(response, Stopped):
            logger.warning("Unexpected response to shutdown: %r", response)
        self.worker.join(timeout)

    def _ensure_available(self) -> None:
        worker = self.worker
        if worker.failure is not None:
            raise StoreUnavailable("store worker failed") from worker.failure
        if not worker.running:
            raise StoreUnavailable("store worker is not running")
