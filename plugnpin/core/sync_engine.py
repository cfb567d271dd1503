import threading
from typing import List

from plugnpin.core.container_event import ContainerEvent
from plugnpin.core.docker_watcher import DockerWatcher
from plugnpin.core.reconciler import Reconciler
from plugnpin.logger import logger


class SyncEngine:
    """
    Drives the reconciler from a periodic full scan and from the live Docker
    event streams. Each runs in its own thread; stop() ends all of them while
    letting a reconciliation already in progress finish.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        watchers: List[DockerWatcher],
        run_interval: float = 3600.0,
    ) -> None:
        self.reconciler = reconciler
        self.watchers = watchers
        self.run_interval = run_interval
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run_once(self) -> None:
        for watcher in self.watchers:
            try:
                events = watcher.list_relevant_containers()
            except Exception as e:
                logger.error(f"[sync_engine] ERROR getting containers from {watcher.label}: {e}")
                continue

            logger.info(f"[sync_engine] Found {len(events)} containers on {watcher.label}")
            for event in events:
                if self.stopped:
                    return
                self.reconciler.handle_event(event, log_skips=True)
        logger.info("[sync_engine] Done")

    def run_scheduled(self) -> None:
        self._tick()
        if self.run_interval == 0:
            return

        while not self.stopped:
            logger.info(f"[sync_engine] Will run again in {self.run_interval:g}s")
            if self._stop.wait(self.run_interval):
                break
            self._tick()
        logger.info("[sync_engine] Scheduled scan stopped")

    def _tick(self) -> None:
        try:
            self.run_once()
        except Exception as e:
            logger.exception(f"[sync_engine] Sync error: {e}")

    def listen_for_events(self, watcher: DockerWatcher) -> None:
        try:
            watcher.watch(self.handle_event)
        except Exception as e:
            logger.error(f"[sync_engine] Docker event listener on {watcher.label} stopped: {e}")

    def handle_event(self, event: ContainerEvent) -> None:
        if self.stopped:
            return
        try:
            self.reconciler.handle_event(event)
        except Exception as e:
            logger.exception(f"[sync_engine] Error handling event for container '{event.name}': {e}")

    def start(self) -> None:
        self._threads = [
            threading.Thread(target=self.run_scheduled, name="scheduled-scan", daemon=True)
        ]
        for watcher in self.watchers:
            self._threads.append(
                threading.Thread(
                    target=self.listen_for_events,
                    args=(watcher,),
                    name=f"events-{watcher.label}",
                    daemon=True,
                )
            )
        for thread in self._threads:
            thread.start()

    def wait(self) -> None:
        # Short joins keep the main thread free to run signal handlers
        while any(t.is_alive() for t in self._threads):
            for thread in self._threads:
                thread.join(timeout=0.5)

    def run(self) -> None:
        self.start()
        self.wait()
        logger.info("[sync_engine] Shutdown complete.")

    def stop(self) -> None:
        if self.stopped:
            return
        logger.info("[sync_engine] Graceful shutdown initiated.")
        self._stop.set()
        for watcher in self.watchers:
            try:
                watcher.stop()
            except Exception as e:
                logger.warning(f"[sync_engine] Failed to stop watcher for {watcher.label}: {e}")
