#!/usr/bin/env python3
"""
Controller runtime: watches autoscaler traits and feeds a bounded worker pool
"""

import concurrent.futures
import heapq
import itertools
import logging
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Set, Tuple

from .constants import REQUEUE_AFTER_SECONDS
from .metrics import QUEUE_DEPTH
from .reconciler import AutoscalerReconciler

logger = logging.getLogger(__name__)


class WorkQueue:
    """
    Key queue with de-duplication, per-key exclusivity and delayed adds.

    A key handed out by get() is not handed out again until done() is called
    for it; adds that arrive meanwhile are folded into one re-queue at done().
    """

    def __init__(self):
        self._queue: Deque[str] = deque()
        self._dirty: Set[str] = set()
        self._processing: Set[str] = set()
        self._delayed: List[Tuple[float, int, str]] = []
        self._counter = itertools.count()
        self._cond = threading.Condition()
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def _add_locked(self, key: str) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        QUEUE_DEPTH.set(len(self._queue))
        self._cond.notify()

    def add(self, key: str) -> None:
        with self._cond:
            self._add_locked(key)

    def add_after(self, key: str, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._delayed, (time.monotonic() + delay, next(self._counter), key))
            self._cond.notify_all()

    def _promote_ready_locked(self) -> Optional[float]:
        """Move due delayed keys into the queue; return seconds until the next one"""
        now = time.monotonic()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, key = heapq.heappop(self._delayed)
            self._add_locked(key)
        if self._delayed:
            return self._delayed[0][0] - now
        return None

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Block until a key is ready; None on timeout or shutdown"""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                next_delayed = self._promote_ready_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._processing.add(key)
                    self._dirty.discard(key)
                    QUEUE_DEPTH.set(len(self._queue))
                    return key
                if self._shutting_down:
                    return None

                wait_for = next_delayed
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)
                self._cond.wait(wait_for)

    def done(self, key: str) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                QUEUE_DEPTH.set(len(self._queue))
                self._cond.notify()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()


class TraitController:
    """Runs reconciles for every watched trait on a bounded pool of workers"""

    def __init__(
        self,
        store,
        reconciler: AutoscalerReconciler,
        workers: int = 4,
        namespace: Optional[str] = None,
        watch_timeout: int = 300,
    ):
        """
        Initialize the controller

        Args:
            store: ResourceStore used to watch traits
            reconciler: pipeline invoked for each trait key
            workers: maximum number of concurrent reconciles
            namespace: namespace to watch, None for all namespaces
            watch_timeout: seconds before a watch is restarted (and traits re-listed)
        """
        self.store = store
        self.reconciler = reconciler
        self.workers = workers
        self.namespace = namespace or None
        self.watch_timeout = watch_timeout

        self.queue = WorkQueue()
        self.thread_pool: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self.watch_thread: Optional[threading.Thread] = None
        self.running = False

        # Last outcome per key, for the status API only
        self.last_results: Dict[str, Dict[str, Any]] = {}
        self._results_lock = threading.Lock()

        logger.info(f"TraitController initialized (workers={workers}, namespace={self.namespace or '*'})")

    def enqueue(self, key: str) -> None:
        self.queue.add(key)

    def start(self, watch: bool = True) -> None:
        if self.running:
            logger.warning("TraitController already running")
            return
        self.running = True
        self.thread_pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.workers,
            thread_name_prefix="reconcile"
        )
        for _ in range(self.workers):
            self.thread_pool.submit(self._worker)

        if watch:
            self.watch_thread = threading.Thread(target=self._watch_loop, name="trait-watch", daemon=True)
            self.watch_thread.start()
        logger.info("TraitController started")

    def stop(self) -> None:
        if not self.running:
            return
        logger.info("Stopping TraitController")
        self.running = False
        self.queue.shut_down()
        if self.thread_pool:
            self.thread_pool.shutdown(wait=True)

    def run_forever(self) -> None:
        self.start()
        while self.running:
            time.sleep(1)

    def process_next(self, timeout: Optional[float] = None) -> bool:
        """Reconcile one queued key; False when nothing was ready"""
        key = self.queue.get(timeout=timeout)
        if key is None:
            return False
        try:
            self._process(key)
        finally:
            self.queue.done(key)
        return True

    def _worker(self) -> None:
        while self.running:
            try:
                self.process_next(timeout=1.0)
            except Exception as e:
                logger.error(f"Error in reconcile worker: {e}")

    def _process(self, key: str) -> None:
        namespace, _, name = key.partition("/")
        requeue_after = self.reconciler.requeue_after
        try:
            result = self.reconciler.reconcile(namespace, name)
            outcome = result.to_dict()
            requeue_after = result.requeue_after
        except Exception as e:
            logger.exception(f"Reconcile of {key} raised")
            outcome = {"key": key, "succeeded": False, "error": str(e), "requeue_after": requeue_after}

        outcome["timestamp"] = datetime.now(timezone.utc).isoformat()
        with self._results_lock:
            self.last_results[key] = outcome

        if requeue_after:
            self.queue.add_after(key, requeue_after)

    def _watch_loop(self) -> None:
        api_version = self.reconciler.trait_api_version
        kind = self.reconciler.trait_kind
        while self.running:
            try:
                for event_type, obj in self.store.watch(api_version, kind, self.namespace, timeout=self.watch_timeout):
                    if not self.running:
                        break
                    metadata = obj.get("metadata", {})
                    key = f"{metadata.get('namespace', 'default')}/{metadata.get('name')}"
                    if event_type == "DELETED":
                        with self._results_lock:
                            self.last_results.pop(key, None)
                        continue
                    self.enqueue(key)
            except Exception as e:
                logger.error(f"Error watching {kind}: {e}")
                time.sleep(5)

    def status(self) -> Dict[str, Any]:
        with self._results_lock:
            results = dict(self.last_results)
        return {
            "running": self.running,
            "workers": self.workers,
            "namespace": self.namespace or "*",
            "queue_depth": len(self.queue),
            "requeue_after_seconds": getattr(self.reconciler, "requeue_after", REQUEUE_AFTER_SECONDS),
            "traits": results,
        }
