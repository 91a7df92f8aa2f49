import threading

import pytest

from sprinkler_bridge.core.countdown_timer import CountdownTimer


def test_timer_ticks_until_cancelled():
    ticks = []
    three_ticks = threading.Event()

    def on_tick(timer):
        ticks.append(timer)
        if len(ticks) == 3:
            timer.cancel()
            three_ticks.set()

    timer = CountdownTimer(on_tick, interval=0.01, name="countdown-test")
    timer.start()

    assert three_ticks.wait(timeout=5.0)
    timer.join(timeout=5.0)
    assert len(ticks) == 3
    assert all(t is timer for t in ticks)
    assert timer.is_running is False


def test_timer_cannot_be_started_twice():
    timer = CountdownTimer(lambda t: None, interval=10.0)
    timer.start()
    try:
        with pytest.raises(RuntimeError):
            timer.start()
    finally:
        timer.cancel()
        timer.join(timeout=5.0)


def test_cancel_before_first_tick():
    ticks = []
    timer = CountdownTimer(ticks.append, interval=10.0)
    timer.start()

    timer.cancel()
    timer.join(timeout=5.0)

    assert ticks == []
