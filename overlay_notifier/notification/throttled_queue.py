from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Optional

from overlay_notifier.core.config.settings import NotifierConfig
from overlay_notifier.domain.models import CanonicalPayload
from overlay_notifier.notification.base import Deliverer, DeliveryResult

logger = logging.getLogger(__name__)


class ThrottledQueue:
    """
    FIFO of canonical payloads released to a deliverer at a throttled rate.

    Each tick of the background loop is in one of three states:

    - Idle: queue empty, nothing happens.
    - Pending: items waiting but less than ``config.throttle_s`` has passed
      since the last release, nothing happens.
    - Releasing: the head item is removed and delivered, then the release
      time is set to the current clock reading whatever the outcome.

    At most one item is released per tick, so a backlog drains at one item
    per throttle interval once the gate opens.

    Concurrency Model
    -----------------
    - ``enqueue`` may be called from any thread. It only appends under a short
      lock and never waits on a delivery in progress.
    - Only the loop thread pops items and writes the release time, and it
      delivers outside the lock. One delivery is in flight at most.
    - ``start`` replaces a running loop, so at most one loop thread exists.

    Parameters
    ----------
    deliverer
        Object performing the network call.
    config_provider
        Returns the current configuration snapshot. Read on every tick so
        live setting changes apply from the next tick.
    clock
        Monotonic clock in seconds. Injectable for tests.
    """

    def __init__(
        self,
        deliverer: Deliverer,
        config_provider: Callable[[], NotifierConfig],
        clock: Callable[[], float] = time.monotonic,
        name: str = "overlay-notifier",
    ):
        self._deliverer = deliverer
        self._config_provider = config_provider
        self._clock = clock
        self._name = name

        self._q: Deque[CanonicalPayload] = deque()
        self._lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._last_release = -math.inf

        self._thread: Optional[threading.Thread] = None
        self._stop: Optional[threading.Event] = None
        self._lifecycle = threading.Lock()

    @property
    def depth(self) -> int:
        with self._lock:
            return len(self._q)

    @property
    def last_release(self) -> float:
        return self._last_release

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def enqueue(self, payload: CanonicalPayload) -> None:
        """
        Append a payload to the tail of the queue.

        Never blocks on delivery and never rejects.
        """
        with self._lock:
            self._q.append(payload)
            depth = len(self._q)
        logger.info("[%s] queued %r, queue depth %d", self._name, payload.title, depth)

    def tick(self) -> Optional[DeliveryResult]:
        """
        Run one scheduling step.

        Returns
        -------
        DeliveryResult or None
            The outcome if an item was released this tick. None if nothing
            was released or the deliverer raised.
        """
        with self._tick_lock:
            return self._tick_locked()

    def _tick_locked(self) -> Optional[DeliveryResult]:
        config = self._config_provider()
        now = self._clock()

        with self._lock:
            if not self._q:
                return None
            if now - self._last_release < config.throttle_s:
                return None
            payload = self._q.popleft()
            remaining = len(self._q)

        try:
            result = self._deliverer.send(payload, config)
        except Exception as e:
            logger.error("[%s] delivery of %r failed: %r", self._name, payload.title, e)
            result = None
        finally:
            self._last_release = self._clock()

        logger.debug("[%s] released %r, %d remaining", self._name, payload.title, remaining)
        return result

    def start(self) -> None:
        """
        Start the background loop, replacing one that is already running.
        """
        with self._lifecycle:
            self._stop_locked()
            stop = threading.Event()
            thread = threading.Thread(target=self._run, args=(stop,), name=self._name, daemon=True)
            self._stop = stop
            self._thread = thread
            thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """
        Stop the background loop. Safe to call repeatedly or before start().

        Parameters
        ----------
        timeout
            Maximum time to wait for the loop thread. Defaults to the
            delivery timeout plus one tick, so a delivery in progress can finish.
        """
        with self._lifecycle:
            self._stop_locked(timeout)

    def _stop_locked(self, timeout: float | None = None) -> None:
        if self._stop is None or self._thread is None:
            return

        self._stop.set()
        if self._thread is not threading.current_thread():
            if timeout is None:
                cfg = self._config_provider()
                timeout = cfg.request_timeout_s + cfg.tick_interval_s
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("[%s] loop did not stop within %.1fs", self._name, timeout)
        self._stop = None
        self._thread = None

    def _run(self, stop: threading.Event) -> None:
        """
        Loop body: tick, then sleep one tick interval, until ``stop`` is set.
        """
        while not stop.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error("[%s] tick failed: %r", self._name, e)
            cfg = self._config_provider()
            # duration can be lowered live below the configured tick
            stop.wait(min(cfg.tick_interval_s, cfg.throttle_s))
