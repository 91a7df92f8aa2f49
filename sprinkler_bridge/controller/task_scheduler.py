# sprinkler_bridge/controller/task_scheduler.py

import threading

from collections.abc import Callable
from dataclasses import dataclass

import sprinkler_bridge.utils.time_utils as time_utils

from sprinkler_bridge.controller.thread_manager import TaskType, ThreadManager
from sprinkler_bridge.exceptions import WorkerThreadAlreadyExistsError
from sprinkler_bridge.utils.logger import get_logger


LOOP_SLEEP_INTERVAL = 0.5  # seconds


@dataclass
class ScheduledTask:
    name: str
    fn: Callable
    interval: float  # seconds
    last_run: float | None = None       # monotonic


class TaskScheduler:
    """Interval scheduler for the bridge's periodic background tasks (the status poll)."""

    def __init__(self, thread_manager: ThreadManager, clock: Callable[[], float] = time_utils.monotonic):
        self.thread_manager = thread_manager
        self.tasks: dict[str, ScheduledTask] = {}
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self.logger = get_logger(self.__class__.__name__)


    def register_task(self, name: str, fn: Callable,
                      interval: float) -> None:
        """
        Register a periodic task. Each run executes in its own scheduler worker thread; a run
        that is due while the previous one is still going is skipped.

        :param name: Unique name of the task.
        :param fn: Function to execute periodically.
        :param interval: Interval between executions in seconds.
        :raises ValueError: if a task with the same name is already registered.
        """

        if name in self.tasks:
            raise ValueError(f"Task with name '{name}' is already registered.")

        self.tasks[name] = ScheduledTask(
            name=name,
            fn=fn,
            interval=interval,
        )

        self.logger.info(f"Registered task '{name}' with interval {interval}s.")


    def start(self) -> None:
        """Start the task scheduler."""

        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="TaskScheduler", daemon=True)
        self._thread.start()
        self.logger.info("TaskScheduler started.")


    def stop(self, timeout: float = 10.0) -> None:
        """
        Stop the task scheduler. Wait for the scheduler thread to terminate.

        :raises TimeoutError: if the scheduler thread fails to stop within the given timeout.
        """

        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                raise TimeoutError("Failed to stop TaskScheduler thread within the given timeout.")
            self._thread = None

        self.logger.info("TaskScheduler stopped.")


    def run_pending(self) -> None:
        """Run every task that is due. Called by the loop; exposed for driving the scheduler directly."""
        now = self._clock()
        for task in list(self.tasks.values()):
            if task.last_run is None or now - task.last_run >= task.interval:
                self._execute_task(task, now)


    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.run_pending()
            self._stop_event.wait(timeout=LOOP_SLEEP_INTERVAL)


    def _execute_task(self, task: ScheduledTask, now: float) -> None:
        task.last_run = now
        try:
            self.thread_manager.start_worker(task.name, TaskType.SCHEDULER, task.fn)
        except WorkerThreadAlreadyExistsError:
            self.logger.warning(f"Task '{task.name}' is still running from the previous interval, skipping.")
