# sprinkler_bridge/core/rain_delay.py

import threading

from collections.abc import Callable
from typing import Optional

from sprinkler_bridge.interfaces import DeviceClientLike
from sprinkler_bridge.utils.logger import get_logger


class RainDelayState:
    """
    Mirror of the controller's rain-delay flag.

    Listeners are only called when the flag flips; the first observation after startup counts as a flip.
    """

    def __init__(self, client: DeviceClientLike, hours: int):
        self.logger = get_logger(self.__class__.__name__)
        self.client = client
        self.hours = hours
        self._lock = threading.Lock()
        self._value: Optional[bool] = None          # last known value, None until first observed
        self._listeners: list[Callable[[bool], None]] = []

    @property
    def enabled(self) -> bool:
        with self._lock:
            return bool(self._value)

    def add_listener(self, listener: Callable[[bool], None]) -> None:
        self._listeners.append(listener)

    def update(self, observed: bool) -> bool:
        """
        Record the controller-observed flag.

        :return: True if the value changed and listeners were notified.
        """
        with self._lock:
            if self._value is not None and self._value == observed:
                return False
            self._value = observed

        self.logger.debug(f"Rain delay is now {'on' if observed else 'off'}.")
        self._notify(observed)
        return True

    def set_on(self, on: bool) -> None:
        """
        Start a rain delay of the configured length, or cancel the active one.

        :raises DeviceError: if the controller rejects the command or cannot be reached.
        """
        hours = self.hours if on else 0
        self.logger.info(f"Setting rain delay to {hours} hours.")
        self.client.set_rain_delay(hours)
        self.update(on)

    def _notify(self, value: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                self.logger.error(f"Rain delay listener raised an exception: {e}")
