"""
Publish Dispatcher - non-blocking hand-off from detection to MQTT.

Detection threads call publish(topic, message), which only enqueues. One
background thread drains the queue and hands each message to the publisher
for its logical topic.

Failures never reach the caller:
- queue full -> message dropped, logged
- broker unavailable / publish error -> logged by the publisher, counted here

Threading Model:
- Worker threads (UpdateWorkerPool) enqueue
- MQTT Publisher Thread (ours) dequeues and publishes
"""

import logging
import queue
import threading
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from zonetrack_mqtt.logging import LogEvent, StructuredLogger, create_logger

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    """Logical publish topics."""
    POSITION = "position"
    CROSSING = "crossing"


class EventSink(Protocol):
    """What the detector needs from a publisher."""

    def publish(self, topic: Topic, message: Any) -> bool:
        ...


class PublishDispatcher:
    """
    Queue + thread in front of the position and crossing publishers.

    Usage:
        dispatcher = PublishDispatcher(position_publisher, crossing_publisher)
        dispatcher.start()
        dispatcher.publish(Topic.CROSSING, event)   # returns immediately
        dispatcher.stop()                           # drains, then joins
    """

    def __init__(
        self,
        position_publisher,  # PositionPublisher
        crossing_publisher,  # CrossingEventPublisher
        queue_size: int = 1000,
        slog: Optional[StructuredLogger] = None,
    ):
        self.position_publisher = position_publisher
        self.crossing_publisher = crossing_publisher
        self._queue: "queue.Queue[tuple]" = queue.Queue(maxsize=queue_size)
        self._slog = slog or create_logger("dispatcher")

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._stats_lock = threading.Lock()
        self._stats = {"enqueued": 0, "published": 0, "failed": 0, "dropped": 0}

    def _bump(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def publish(self, topic: Topic, message: Any) -> bool:
        """Enqueue a message. Returns False when it had to be dropped."""
        try:
            self._queue.put_nowait((Topic(topic), message))
        except queue.Full:
            self._bump("dropped")
            self._slog.warning(
                event=LogEvent.MQTT_PUBLISH_DROPPED,
                message="Publish queue full, dropping message",
                metadata={"topic": Topic(topic).value, "queue_size": self._queue.maxsize},
            )
            return False

        self._bump("enqueued")
        return True

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Publish dispatcher already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._publish_loop,
            name="MQTTPublisherThread",
            daemon=True,
        )
        self._thread.start()
        logger.info("MQTT publisher thread started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop after draining what is already queued."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info("MQTT publisher thread stopped")

    def _deliver(self, topic: Topic, message: Any) -> bool:
        if topic is Topic.CROSSING:
            return self.crossing_publisher.publish_crossing(message)
        return self.position_publisher.publish_position(message)

    def _publish_loop(self) -> None:
        """
        MQTT publisher thread loop.

        Exits once stop was requested and the queue is empty.
        """
        logger.info("MQTT publisher loop started")

        while not (self._stop_event.is_set() and self._queue.empty()):
            try:
                topic, message = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue

            try:
                ok = self._deliver(topic, message)
            except Exception as e:
                ok = False
                self._slog.error(
                    event=LogEvent.MQTT_PUBLISH_ERROR,
                    message=f"Error publishing {topic.value} message",
                    metadata={"topic": topic.value},
                    exc_info=e,
                )
            finally:
                self._queue.task_done()

            self._bump("published" if ok else "failed")

        logger.info("MQTT publisher loop stopped")

    def wait_idle(self) -> None:
        """Block until every queued message has been handled."""
        self._queue.join()

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._stats)
        stats["queued"] = self._queue.qsize()
        return stats
