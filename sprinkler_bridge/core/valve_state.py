# sprinkler_bridge/core/valve_state.py

import threading

from collections.abc import Callable
from typing import Optional

from sprinkler_bridge.config.bridge_config import ValveConfig
from sprinkler_bridge.core.countdown_timer import CountdownTimer
from sprinkler_bridge.core.status_models import ValveStatus
from sprinkler_bridge.interfaces import ValveCommandClient

import sprinkler_bridge.utils.time_utils as time_utils
from sprinkler_bridge.utils.logger import get_logger


ValveListener = Callable[[ValveStatus], None]


class ValveState:
    """
    Locally held state of one valve, reconciled against the controller.

    Two sources change the state:
    - local commands (activate / deactivate), applied optimistically and confirmed by the controller
    - observations from polls (reconcile), adopted without sending any command back

    A per-valve countdown ticks the remaining duration down once per second and turns the valve
    off locally when it reaches zero. Every mutation runs under the valve's lock; listeners are
    called after the lock is released and only when the snapshot actually changed.
    """

    def __init__(self, config: ValveConfig, client: ValveCommandClient,
                 countdown_factory: Callable[..., CountdownTimer] = CountdownTimer,
                 clock: Callable[[], float] = time_utils.monotonic):
        self.logger = get_logger(f"ValveState-{config.name}")
        self.name: str = config.name
        self.index: int = config.index
        self.default_duration: int = config.default_duration
        self.client = client

        self._countdown_factory = countdown_factory
        self._clock = clock

        self._lock = threading.RLock()              # guards the state below
        self._command_lock = threading.Lock()       # one command per valve at a time
        self._publish_lock = threading.RLock()      # listeners see snapshots in mutation order

        self._active: bool = False
        self._in_use: bool = False
        self._remaining_duration: int = 0
        self._manually_triggered: bool = False
        self._duration: int = config.default_duration

        self._command_pending: bool = False
        self._last_command_at: Optional[float] = None
        self._expirations: int = 0                  # countdowns that ran out, checked by rollback
        self._countdown: Optional[CountdownTimer] = None

        self._listeners: list[ValveListener] = []
        self._last_published: ValveStatus = self._snapshot()


    # ===========================================================================================================
    # Public API - State
    # ===========================================================================================================

    @property
    def status(self) -> ValveStatus:
        with self._lock:
            return self._snapshot()

    @property
    def active(self) -> bool:
        return self.status.active

    @property
    def in_use(self) -> bool:
        return self.status.in_use

    @property
    def remaining_duration(self) -> int:
        return self.status.remaining_duration

    @property
    def manually_triggered(self) -> bool:
        return self.status.manually_triggered

    @property
    def duration(self) -> int:
        return self.status.duration

    @property
    def has_manual_countdown(self) -> bool:
        """True while a directly triggered run is counting down locally."""
        with self._lock:
            return self._manually_triggered and self._countdown_running()

    def add_listener(self, listener: ValveListener) -> None:
        self._listeners.append(listener)


    # ===========================================================================================================
    # Public API - Commands
    # ===========================================================================================================

    def activate(self, duration: Optional[int] = None) -> None:
        """
        Turn the valve on for `duration` seconds (the configured duration if omitted).

        The valve shows as active immediately; water-in-use and the countdown follow once the
        controller confirms. If the controller rejects the command or cannot be reached, the
        optimistic state is rolled back and the error is re-raised.

        :raises ValueError: if duration is not positive.
        :raises DeviceError: if the command fails.
        """
        with self._command_lock:
            with self._lock:
                duration = self._duration if duration is None else int(duration)
                if duration <= 0:
                    raise ValueError(f"Duration must be greater than 0. Received: {duration}.")
                previous = (self._active, self._manually_triggered, self._expirations)
                self._active = True
                self._manually_triggered = True
                self._command_pending = True
            self._publish()

            self.logger.info(f"Turning on for {duration} seconds.")
            try:
                self.client.set_valve(1, self.index, duration)
            except Exception as e:
                self.logger.error(f"Failed to turn on: {e}")
                self._rollback(previous)
                raise

            with self._lock:
                self._command_pending = False
                self._last_command_at = self._clock()
                self._active = True
                self._in_use = True
                self._remaining_duration = duration
                self._start_countdown()
            self._publish()

    def deactivate(self) -> None:
        """
        Turn the valve off.

        :raises DeviceError: if the command fails; the optimistic state is rolled back first.
        """
        with self._command_lock:
            with self._lock:
                previous = (self._active, self._manually_triggered, self._expirations)
                self._active = False
                self._manually_triggered = True
                self._command_pending = True
                duration = self._duration
            self._publish()

            self.logger.info("Turning off.")
            try:
                self.client.set_valve(0, self.index, duration)
            except Exception as e:
                self.logger.error(f"Failed to turn off: {e}")
                self._rollback(previous)
                raise

            with self._lock:
                self._command_pending = False
                self._last_command_at = self._clock()
                self._active = False
                self._in_use = False
                self._remaining_duration = 0
                self._stop_countdown()
            self._publish()

    def set_duration(self, seconds: int) -> None:
        """Set the run duration used by the next activation."""
        seconds = int(seconds)
        if seconds <= 0:
            raise ValueError(f"Duration must be greater than 0. Received: {seconds}.")
        with self._lock:
            self._duration = seconds
        self.logger.debug(f"Duration set to {seconds} seconds.")
        self._publish()


    # ===========================================================================================================
    # Public API - Reconciliation
    # ===========================================================================================================

    def reconcile(self, observed_is_active: bool, observed_remaining: int,
                  observed_at: Optional[float] = None) -> bool:
        """
        Merge the controller-observed state of this valve into the local state.

        - skipped while a local command is in flight, and for polls issued before the last
          confirmed command (the command is newer than what the poll saw)
        - a differing on/off state is adopted as-is, without sending a command
        - an agreeing running valve gets its remaining duration refreshed, unless it was
          triggered locally and its own countdown is still running

        :return: True if the local state changed.
        """
        observed_remaining = max(int(observed_remaining), 0)

        with self._lock:
            if self._command_pending:
                self.logger.debug("Command in flight, skipping reconciliation.")
                return False
            if observed_at is not None and self._last_command_at is not None and observed_at < self._last_command_at:
                self.logger.debug("Poll was issued before the last command, skipping reconciliation.")
                return False

            if observed_is_active != self._active:
                self.logger.debug(
                    f"Controller reports active={observed_is_active}, local state is active={self._active}. Adopting controller state."
                )
                if observed_is_active:
                    self._adopt_active(observed_remaining)
                else:
                    self._adopt_inactive()
            elif self._active:
                if self._manually_triggered and self._countdown_running():
                    return False
                self._in_use = True
                self._remaining_duration = observed_remaining
                if observed_remaining > 0 and not self._countdown_running():
                    self._start_countdown()
                elif observed_remaining == 0:
                    self._stop_countdown()

        return self._publish()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the countdown and wait for its thread. The valve on the controller is left as it is."""
        with self._lock:
            timer = self._countdown
            self._stop_countdown()
        if timer is not None:
            timer.join(timeout)


    # ===========================================================================================================
    # Private Methods
    # ===========================================================================================================

    def _on_countdown_tick(self, timer: CountdownTimer) -> None:
        with self._lock:
            if timer is not self._countdown:
                return  # tick from a replaced timer
            if not self._in_use:
                self._stop_countdown()
                return

            self._remaining_duration = max(self._remaining_duration - 1, 0)
            if self._remaining_duration == 0:
                self.logger.info("Countdown finished, valve is off.")
                self._expirations += 1
                self._manually_triggered = False
                self._active = False
                self._in_use = False
                self._stop_countdown()
        self._publish()

    def _adopt_active(self, remaining: int) -> None:
        self._manually_triggered = False
        self._active = True
        self._in_use = True
        self._remaining_duration = remaining
        if remaining > 0:
            self._start_countdown()
        else:
            self._stop_countdown()

    def _adopt_inactive(self) -> None:
        self._manually_triggered = False
        self._active = False
        self._in_use = False
        self._remaining_duration = 0
        self._stop_countdown()

    def _rollback(self, previous: tuple[bool, bool, int]) -> None:
        active, manually_triggered, expirations = previous
        with self._lock:
            self._command_pending = False
            if expirations != self._expirations:
                # the countdown ran out during the command, the valve is already off
                self.logger.debug("Countdown finished during the failed command, keeping the valve off.")
            else:
                self._active = active
                self._manually_triggered = manually_triggered
        self._publish()

    def _start_countdown(self) -> None:
        self._stop_countdown()
        timer = self._countdown_factory(self._on_countdown_tick, name=f"countdown-{self.name}")
        self._countdown = timer
        timer.start()

    def _stop_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def _countdown_running(self) -> bool:
        return self._countdown is not None and self._countdown.is_running

    def _snapshot(self) -> ValveStatus:
        return ValveStatus(
            name=self.name,
            index=self.index,
            active=self._active,
            in_use=self._in_use,
            remaining_duration=self._remaining_duration,
            manually_triggered=self._manually_triggered,
            duration=self._duration,
        )

    def _publish(self) -> bool:
        # never called with self._lock held; the publish lock is always taken first
        with self._publish_lock:
            with self._lock:
                snapshot = self._snapshot()
                if snapshot == self._last_published:
                    return False
                self._last_published = snapshot

            for listener in list(self._listeners):
                try:
                    listener(snapshot)
                except Exception as e:
                    self.logger.error(f"Valve listener raised an exception: {e}")
        return True
