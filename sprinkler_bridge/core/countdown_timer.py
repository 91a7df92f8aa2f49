# sprinkler_bridge/core/countdown_timer.py

import threading

from collections.abc import Callable


TICK_INTERVAL = 1.0  # seconds


class CountdownTimer:
    """
    Cancelable periodic ticker owned by one ValveState.

    Calls on_tick(timer) every `interval` seconds from its own daemon thread until cancelled.
    The timer passes itself so the owner can ignore ticks from a timer it has already replaced.
    cancel() never joins the thread, so it is safe to call while holding the owner's lock.
    """

    def __init__(self, on_tick: Callable[["CountdownTimer"], None], interval: float = TICK_INTERVAL,
                 name: str = "countdown"):
        self._on_tick = on_tick
        self.interval = interval
        self.name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"Countdown '{self.name}' was already started.")
        self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def _run_loop(self) -> None:
        # wait() returns True once cancelled
        while not self._stop_event.wait(timeout=self.interval):
            self._on_tick(self)
