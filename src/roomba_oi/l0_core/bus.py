from __future__ import annotations

from typing import Callable, DefaultDict, List
from collections import defaultdict
import logging
import threading

from .bounded_queue import BoundedQueue

log = logging.getLogger(__name__)

_STOP = "__stop__"


class EventBus:
    """
    Lightweight in-process pub/sub for decoded telemetry.

    * Bounded queue prevents unbounded growth (drop-newest policy).
    * Single dispatcher thread delivers events serially to all subscribers.
    * Subscribers run on the dispatcher thread, so keep handlers non-blocking.

    Topics used by the OI service: "sensors" (SensorUpdate) and "faults" (Fault).
    """

    def __init__(self, capacity: int = 1024, publish_timeout_ms: int = 10) -> None:
        self._subscribers: DefaultDict[str, List[Callable[[object], None]]] = defaultdict(list)
        self._queue = BoundedQueue(maxsize=capacity, name="EventBus")
        self._publish_timeout = publish_timeout_ms / 1000.0
        self._lock = threading.Lock()
        self._pending = 0
        self._settled = threading.Condition()
        self._thread = threading.Thread(
            target=self._run, name="EventBus-Dispatcher", daemon=True
        )
        self._thread.start()

    # ---- subscription API ----
    def subscribe(self, topic: str, callback: Callable[[object], None]) -> None:
        """
        Register ``callback`` to receive events for ``topic``.

        Parameters
        ----------
        topic : str
            Topic name (e.g., "sensors", "faults").
        callback : Callable[[object], None]
            Function invoked with the event payload on the dispatcher thread.
        """
        with self._lock:
            self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: Callable[[object], None]) -> None:
        with self._lock:
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)

    # ---- publishing API ----
    def publish(self, topic: str, event: object) -> bool:
        """
        Short-wait publish. Returns True if enqueued; False if the queue was full.
        """
        with self._settled:
            self._pending += 1
        ok = self._queue.put((topic, event), timeout=self._publish_timeout)
        if not ok:
            self._done()
            log.warning("EventBus full; dropped event on topic '%s'", topic)
        return ok

    def drain(self, timeout: float = 1.0) -> bool:
        """Block until every queued event has been delivered; False on timeout."""
        with self._settled:
            return self._settled.wait_for(lambda: self._pending == 0, timeout)

    # ---- lifecycle ----
    @property
    def dropped(self) -> int:
        """Events rejected because the queue was full."""
        return self._queue.dropped()

    def close(self) -> None:
        log.info("EventBus closing (%d events accepted, %d dropped)",
                 self._queue.accepted(), self._queue.dropped())
        self._queue.put((_STOP, None), timeout=0.1)
        self._thread.join(timeout=1.0)

    # ---- dispatcher loop ----
    def _done(self) -> None:
        with self._settled:
            self._pending -= 1
            if self._pending == 0:
                self._settled.notify_all()

    def _run(self) -> None:
        while True:
            ok, item = self._queue.get(timeout=0.1)
            if not ok:
                continue
            topic, event = item
            if topic == _STOP:
                break
            with self._lock:
                callbacks = list(self._subscribers.get(topic, []))
            for callback in callbacks:
                try:
                    callback(event)  # all callbacks run on this single dispatcher thread
                except Exception:
                    log.exception("subscriber error on topic '%s'", topic)
            self._done()
