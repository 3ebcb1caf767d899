"""
Update Worker Pool - parallel across vehicles, ordered within a vehicle.

Each worker owns a bounded queue. An update is routed to
``stable_hash(vehicle_id) % workers``, so all updates of one vehicle are
processed by the same thread in arrival order, while different vehicles
proceed in parallel. No lock is held across a detection.

Threading Model:
- Ingest thread (paho network loop) calls submit()
- N UpdateWorker threads call the handler
"""

import logging
import queue
import threading
from typing import Any, Callable, Dict, List, Optional

from zonetrack_mqtt.logging import LogEvent, StructuredLogger, create_logger
from zonetrack_mqtt.schemas import PositionUpdate
from zonetrack_processor.state import stable_hash

logger = logging.getLogger(__name__)


class UpdateWorkerPool:
    """
    Fixed set of worker threads fed by per-worker queues.

    Usage:
        pool = UpdateWorkerPool(handler=detector.process, workers=4)
        pool.start()
        pool.submit(update)      # False if the worker queue is full
        pool.stop()              # drains, then joins
    """

    def __init__(
        self,
        handler: Callable[[PositionUpdate], Any],
        workers: int = 4,
        queue_size: int = 1000,
        slog: Optional[StructuredLogger] = None,
    ):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")

        self._handler = handler
        self._queues: List["queue.Queue[PositionUpdate]"] = [
            queue.Queue(maxsize=queue_size) for _ in range(workers)
        ]
        self._threads: List[threading.Thread] = []
        self._stop_event = threading.Event()
        self._slog = slog or create_logger("worker_pool")

        self._stats_lock = threading.Lock()
        self._stats = {"submitted": 0, "processed": 0, "dropped": 0, "errors": 0}

    @property
    def size(self) -> int:
        return len(self._queues)

    def worker_for(self, vehicle_id: str) -> int:
        """Index of the worker that owns this vehicle."""
        return stable_hash(vehicle_id) % len(self._queues)

    def _bump(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def submit(self, update: PositionUpdate) -> bool:
        """Enqueue without blocking. Returns False when dropped."""
        index = self.worker_for(update.vehicle_id)
        try:
            self._queues[index].put_nowait(update)
        except queue.Full:
            self._bump("dropped")
            self._slog.warning(
                event=LogEvent.POSITION_DROPPED,
                message="Worker queue full, dropping position update",
                metadata={"vehicle_id": update.vehicle_id, "worker": index},
            )
            return False

        self._bump("submitted")
        return True

    def start(self) -> None:
        if self._threads:
            logger.warning("Worker pool already running")
            return

        self._stop_event.clear()
        for index, work_queue in enumerate(self._queues):
            thread = threading.Thread(
                target=self._worker_loop,
                args=(index, work_queue),
                name=f"UpdateWorker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.info(f"Started {len(self._threads)} update workers")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop after draining queued updates."""
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        logger.info("Update workers stopped")

    def wait_idle(self) -> None:
        """Block until every submitted update has been processed."""
        for work_queue in self._queues:
            work_queue.join()

    def _worker_loop(self, index: int, work_queue: "queue.Queue[PositionUpdate]") -> None:
        while not (self._stop_event.is_set() and work_queue.empty()):
            try:
                update = work_queue.get(timeout=0.1)
            except queue.Empty:
                continue

            try:
                self._handler(update)
                self._bump("processed")
            except Exception as e:
                # One bad update must not take the worker down
                self._bump("errors")
                self._slog.error(
                    event=LogEvent.PROCESSING_ERROR,
                    message="Error processing position update",
                    metadata={"vehicle_id": update.vehicle_id, "worker": index},
                    exc_info=e,
                )
            finally:
                work_queue.task_done()

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._stats)
        stats["workers"] = len(self._queues)
        stats["queued"] = [q.qsize() for q in self._queues]
        return stats
