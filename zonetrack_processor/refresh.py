"""
Periodic background tasks.

- ZoneRefreshTask: runs ZoneDirectory.refresh() every ``interval_s`` seconds.
  refresh_now() runs one refresh synchronously on the caller's thread; the
  directory serializes concurrent refreshes.
- StateSweepTask: drops expired vehicle states so vehicles that went quiet
  do not stay in memory until they are looked up again.
"""

import logging
import threading
from typing import Optional

from zonetrack_processor.registry import RefreshReport, ZoneDirectory
from zonetrack_processor.state import VehicleStateStore

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Start/stop-able timer calling run_once() every interval_s seconds.

    run_once() must not raise; subclasses log their own failures.
    """

    thread_name = "PeriodicTaskThread"

    def __init__(self, interval_s: float):
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {interval_s}")
        self.interval_s = interval_s
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self):
        raise NotImplementedError

    def start(self) -> None:
        if self.is_running():
            logger.warning(f"{self.thread_name} already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=self.thread_name,
            daemon=True,
        )
        self._thread.start()
        logger.info(f"{self.thread_name} started (every {self.interval_s:g}s)")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info(f"{self.thread_name} stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        # wait() returns True as soon as stop() is called
        while not self._stop_event.wait(self.interval_s):
            self.run_once()


class ZoneRefreshTask(PeriodicTask):
    """
    Usage:
        task = ZoneRefreshTask(directory, interval_s=3600)
        task.refresh_now()   # initial load
        task.start()
        ...
        task.stop()
    """

    thread_name = "ZoneRefreshThread"

    def __init__(self, directory: ZoneDirectory, interval_s: float):
        super().__init__(interval_s)
        self.directory = directory

    def refresh_now(self) -> RefreshReport:
        return self.directory.refresh()

    def run_once(self) -> RefreshReport:
        return self.refresh_now()


class StateSweepTask(PeriodicTask):
    """Purges expired vehicle states on the state TTL cadence."""

    thread_name = "StateSweepThread"

    def __init__(self, state_store: VehicleStateStore, interval_s: Optional[float] = None):
        super().__init__(interval_s if interval_s is not None else state_store.ttl_s)
        self.state_store = state_store

    def run_once(self) -> int:
        return self.state_store.purge_expired()
