"""Controller that sets the desired update to the newest available one."""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import deque
from typing import Any, Callable

from cvoperator.apply import NotFoundError, apply_cluster_version_from_cache
from cvoperator.cincinnati import parse_version

log = logging.getLogger(__name__)

# Times a key is retried before it is dropped from the queue.
MAX_RETRIES = 15


def update_available(updates: list | None) -> bool:
    """True when there is at least one available update."""
    return bool(updates)


def next_update(updates: list) -> dict:
    """Return the update with the highest version.

    Among updates of equal precedence the one listed last wins.
    """
    ordered = list(updates)
    versions = [parse_version(u.get("version") or "") for u in ordered]
    for i in range(1, len(ordered)):
        j = i
        while j > 0 and versions[j].compare(versions[j - 1]) >= 0:
            ordered[j], ordered[j - 1] = ordered[j - 1], ordered[j]
            versions[j], versions[j - 1] = versions[j - 1], versions[j]
            j -= 1
    return ordered[0]


class _RateLimitingQueue:
    """A de-duplicating work queue with exponential back-off re-adds."""

    def __init__(self, base_delay: float = 0.005, max_delay: float = 1000.0) -> None:
        self._cond = threading.Condition()
        self._items: deque = deque()
        self._dirty: set = set()
        self._processing: set = set()
        self._requeues: dict = {}
        self._shutting_down = False
        self._base_delay = base_delay
        self._max_delay = max_delay

    def add(self, key: Any) -> None:
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key not in self._processing:
                self._items.append(key)
                self._cond.notify()

    def get(self, timeout: float) -> Any:
        with self._cond:
            self._cond.wait_for(lambda: self._items or self._shutting_down, timeout)
            if not self._items:
                return None
            key = self._items.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            return key

    def done(self, key: Any) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._items.append(key)
                self._cond.notify()

    def forget(self, key: Any) -> None:
        with self._cond:
            self._requeues.pop(key, None)

    def num_requeues(self, key: Any) -> int:
        with self._cond:
            return self._requeues.get(key, 0)

    def add_rate_limited(self, key: Any) -> None:
        with self._cond:
            count = self._requeues.get(key, 0)
            self._requeues[key] = count + 1
        timer = threading.Timer(min(self._base_delay * 2**count, self._max_delay), self.add, (key,))
        timer.daemon = True
        timer.start()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()


class Controller:
    """Watches a ClusterVersion and moves its desired update to the newest available."""

    def __init__(self, namespace: str, name: str, cv_lister: Any, client: Any) -> None:
        self.namespace = namespace
        self.name = name
        self.cv_lister = cv_lister
        self.client = client
        self.sync_handler: Callable[[str], None] = self.sync
        self._queue = _RateLimitingQueue()

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    def enqueue(self) -> None:
        """Queue the watched ClusterVersion for a sync."""
        self._queue.add(self.key)

    def sync(self, key: str) -> None:
        """Set the desired update of the ClusterVersion to the newest available one."""
        start = time.monotonic()
        log.debug("Started syncing auto-updates %r", key)
        try:
            try:
                cluster_version = self.cv_lister.get("", self.name)
            except NotFoundError:
                log.info("ClusterVersion %s has been deleted", key)
                return
            cluster_version = copy.deepcopy(cluster_version)
            updates = (cluster_version.get("status") or {}).get("availableUpdates")
            if not update_available(updates):
                return
            update = next_update(updates)
            cluster_version.setdefault("spec", {})["desiredUpdate"] = copy.deepcopy(update)
            _, updated = apply_cluster_version_from_cache(self.cv_lister, self.client, cluster_version)
            if updated:
                log.info("Auto Update set to %s", update)
        finally:
            log.debug("Finished syncing auto-updates %r (%.3fs)", key, time.monotonic() - start)

    def _handle_error(self, error: Exception | None, key: str) -> None:
        if error is None:
            self._queue.forget(key)
            return
        if self._queue.num_requeues(key) < MAX_RETRIES:
            log.info("Error syncing controller %s: %s", key, error)
            self._queue.add_rate_limited(key)
            return
        log.error("Dropping controller %r out of the queue: %s", key, error)
        self._queue.forget(key)

    def _worker(self, stop: threading.Event) -> None:
        while not stop.is_set():
            key = self._queue.get(timeout=0.1)
            if key is None:
                continue
            error = None
            try:
                self.sync_handler(key)
            except Exception as exc:  # noqa: BLE001 - every sync failure is retried
                error = exc
            finally:
                self._queue.done(key)
            self._handle_error(error, key)

    def run(self, workers: int, stop: threading.Event) -> None:
        """Process queued keys with ``workers`` threads until ``stop`` is set."""
        log.info("Starting AutoUpdateController")
        threads = [
            threading.Thread(target=self._worker, args=(stop,), daemon=True)
            for _ in range(workers)
        ]
        for thread in threads:
            thread.start()
        try:
            stop.wait()
        finally:
            self._queue.shut_down()
            for thread in threads:
                thread.join()
            log.info("Shutting down AutoUpdateController")