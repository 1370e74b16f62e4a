"""
Unit tests for overlay_notifier.notification.throttled_queue.ThrottledQueue.

Validates, with a fake clock and ticks driven by hand:
- idle ticks do nothing
- enqueue logs the queue depth
- the first item is released immediately
- FIFO delivery order
- at most one release per tick, backlog drains one per interval
- release-to-release spacing is at least the throttle interval
- the release time is updated after failed deliveries and deliverer exceptions
- live interval changes apply on the next tick
- start() replaces a running loop; stop() is idempotent
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional

from overlay_notifier.core.config.settings import NotifierConfig
from overlay_notifier.domain.errors import NetworkError
from overlay_notifier.domain.models import CanonicalPayload
from overlay_notifier.notification.base import DeliveryResult
from overlay_notifier.notification.throttled_queue import ThrottledQueue


@dataclass
class FakeClock:
    """Manually advanced monotonic clock."""
    t: float = 0.0

    def __call__(self) -> float:
        return self.t


@dataclass
class RecordingDeliverer:
    """Deliverer that records (title, clock time) and returns a fixed result."""
    clock: FakeClock
    result: DeliveryResult = field(default_factory=lambda: DeliveryResult.success(200))
    sent: List[tuple] = field(default_factory=list)

    def send(self, payload: CanonicalPayload, config: NotifierConfig) -> DeliveryResult:
        self.sent.append((payload.title, self.clock.t))
        return self.result


class ConfigHolder:
    """Mutable config reference, standing in for the settings store."""

    def __init__(self, cfg: NotifierConfig):
        self.cfg = cfg

    def __call__(self) -> NotifierConfig:
        return self.cfg


def _mk_payload(title: str) -> CanonicalPayload:
    return CanonicalPayload(
        id="tv",
        title=title,
        message=None,
        corner="bottom_end",
        duration=7.0,
        large_icon=None,
        small_icon=None,
        small_icon_color=None,
    )


def _mk_queue(duration: float = 7.0, deliverer=None, clock: Optional[FakeClock] = None):
    clock = clock or FakeClock()
    deliverer = deliverer or RecordingDeliverer(clock)
    holder = ConfigHolder(NotifierConfig(server_url="http://tv/notify", duration=duration))
    q = ThrottledQueue(deliverer=deliverer, config_provider=holder, clock=clock, name="test-queue")
    return q, deliverer, clock, holder


def test_idle_tick_is_noop() -> None:
    q, deliverer, _, _ = _mk_queue()
    assert q.tick() is None
    assert deliverer.sent == []


def test_enqueue_logs_queue_depth(caplog) -> None:
    q, _, _, _ = _mk_queue()

    with caplog.at_level(logging.INFO, logger="overlay_notifier.notification.throttled_queue"):
        q.enqueue(_mk_payload("A"))
        q.enqueue(_mk_payload("B"))

    assert "[test-queue] queued 'A', queue depth 1" in caplog.text
    assert "[test-queue] queued 'B', queue depth 2" in caplog.text


def test_first_item_released_immediately() -> None:
    q, deliverer, clock, _ = _mk_queue()
    q.enqueue(_mk_payload("A"))

    result = q.tick()

    assert result is not None and result.ok
    assert deliverer.sent == [("A", 0.0)]
    assert q.depth == 0
    assert q.last_release == 0.0


def test_enqueue_does_not_touch_release_time() -> None:
    q, _, clock, _ = _mk_queue()
    clock.t = 3.0
    q.enqueue(_mk_payload("A"))
    assert q.last_release == float("-inf")


def test_concrete_scenario_b_waits_for_full_interval() -> None:
    """
    A at t=0, throttle 7s, ticks every 1s, B queued at t=2: B goes out at t=7.
    """
    q, deliverer, clock, _ = _mk_queue(duration=7.0)

    q.enqueue(_mk_payload("A"))
    q.tick()

    for t in range(1, 12):
        clock.t = float(t)
        if t == 2:
            q.enqueue(_mk_payload("B"))
        q.tick()

    assert deliverer.sent == [("A", 0.0), ("B", 7.0)]


def test_fifo_and_one_release_per_tick() -> None:
    """
    A backlog built while the gate is closed drains one item per interval, in order.
    """
    q, deliverer, clock, _ = _mk_queue(duration=2.0)
    q.enqueue(_mk_payload("warmup"))
    q.tick()

    for name in "ABCDE":
        q.enqueue(_mk_payload(name))

    # many intervals elapse while nobody ticks
    clock.t = 100.0
    q.tick()
    assert [s[0] for s in deliverer.sent] == ["warmup", "A"]
    assert q.depth == 4

    # same instant again: gate is closed
    q.tick()
    assert q.depth == 4

    t = 100.0
    while q.depth:
        t += 1.0
        clock.t = t
        q.tick()

    titles = [s[0] for s in deliverer.sent]
    assert titles == ["warmup", "A", "B", "C", "D", "E"]

    release_times = [s[1] for s in deliverer.sent[1:]]
    gaps = [b - a for a, b in zip(release_times, release_times[1:])]
    assert all(g >= 2.0 for g in gaps)
    assert gaps == [2.0, 2.0, 2.0, 2.0]


def test_failed_delivery_consumes_item_and_updates_release_time() -> None:
    clock = FakeClock()
    deliverer = RecordingDeliverer(clock, result=DeliveryResult.failure(NetworkError("down")))
    q, _, _, _ = _mk_queue(deliverer=deliverer, clock=clock)

    q.enqueue(_mk_payload("A"))
    q.enqueue(_mk_payload("B"))
    result = q.tick()

    assert result is not None and not result.ok
    assert q.depth == 1
    assert q.last_release == 0.0

    clock.t = 1.0
    q.tick()
    assert [s[0] for s in deliverer.sent] == ["A"]


def test_deliverer_exception_is_contained() -> None:
    """
    A deliverer that raises must not break the queue; the item is consumed.
    """

    class ExplodingDeliverer:
        def __init__(self) -> None:
            self.calls = 0

        def send(self, payload, config):
            self.calls += 1
            raise RuntimeError("boom")

    clock = FakeClock()
    deliverer = ExplodingDeliverer()
    q, _, _, _ = _mk_queue(duration=1.0, deliverer=deliverer, clock=clock)

    q.enqueue(_mk_payload("A"))
    q.enqueue(_mk_payload("B"))

    assert q.tick() is None
    assert q.last_release == 0.0
    clock.t = 1.0
    q.tick()

    assert deliverer.calls == 2
    assert q.depth == 0


def test_release_time_taken_after_delivery() -> None:
    """
    The gate measures from the end of the previous delivery attempt.
    """

    class SlowDeliverer:
        def __init__(self, clock: FakeClock) -> None:
            self.clock = clock

        def send(self, payload, config):
            self.clock.t += 4.0
            return DeliveryResult.success(200)

    clock = FakeClock()
    q, _, _, _ = _mk_queue(deliverer=SlowDeliverer(clock), clock=clock)
    q.enqueue(_mk_payload("A"))
    q.tick()

    assert q.last_release == 4.0


def test_interval_change_applies_on_next_tick() -> None:
    q, deliverer, clock, holder = _mk_queue(duration=7.0)
    q.enqueue(_mk_payload("A"))
    q.tick()
    q.enqueue(_mk_payload("B"))

    clock.t = 3.0
    q.tick()
    assert len(deliverer.sent) == 1

    holder.cfg = replace(holder.cfg, duration=2.0)
    q.tick()
    assert deliverer.sent[-1] == ("B", 3.0)


def test_stop_before_start_and_twice_is_safe() -> None:
    q, _, _, _ = _mk_queue()
    q.stop()
    q.start()
    q.stop()
    q.stop()
    assert q.is_running is False


def test_restart_leaves_single_loop_thread() -> None:
    """
    Calling start() twice must leave exactly one live loop thread.
    """
    q, _, _, holder = _mk_queue()
    holder.cfg = replace(holder.cfg, tick_interval_s=0.01)

    q.start()
    first = q._thread
    q.start()
    second = q._thread

    try:
        assert first is not second
        assert first is not None and not first.is_alive()
        assert q.is_running
        live = [t for t in threading.enumerate() if t.name == "test-queue" and t.is_alive()]
        assert len(live) == 1
    finally:
        q.stop()


def test_background_loop_delivers_without_duplicates() -> None:
    """
    With a real clock, restarting while items are queued never delivers an item twice.
    """
    sent: List[str] = []
    done = threading.Event()

    class ListDeliverer:
        def send(self, payload, config):
            sent.append(payload.title)
            if len(sent) == 3:
                done.set()
            return DeliveryResult.success(200)

    cfg = NotifierConfig(server_url="http://tv/notify", duration=0.02, tick_interval_s=0.005)
    q = ThrottledQueue(deliverer=ListDeliverer(), config_provider=lambda: cfg, name="test-loop")

    for name in ("A", "B", "C"):
        q.enqueue(_mk_payload(name))

    q.start()
    q.start()
    try:
        assert done.wait(timeout=5.0)
        time.sleep(0.05)
    finally:
        q.stop()

    assert sent == ["A", "B", "C"]
