# sprinkler_bridge/controller/thread_manager.py

import threading

from collections.abc import Callable
from enum import Enum

from sprinkler_bridge.utils.logger import get_logger

from sprinkler_bridge.exceptions import WorkerThreadAlreadyExistsError


class TaskType(Enum):
    COMMAND = "command"
    SCHEDULER = "scheduler"


class WorkerHandle:
    """
    Handle representing a running worker thread.
    """
    def __init__(self, thread: threading.Thread, name: str, task_type: TaskType):
        self.thread = thread
        self.name = name            # Unique worker name
        self.task_type = task_type


class ThreadManager:
    """
    Bridge-level thread manager. Handles:
    - starting/joining workers
    - logging exceptions raised by workers
    - rejecting a second worker under a name that is still running

    Workers are not stopped by the manager; each worker finishes on its own.
    """
    def __init__(self):
        self._workers: dict[str, WorkerHandle] = {}
        self._lock = threading.Lock()
        self.logger = get_logger(self.__class__.__name__)


    # ===========================================================================================================
    # Public API - Start Workers
    # ===========================================================================================================

    def start_worker(self, worker_name: str, task_type: TaskType, target_fn: Callable) -> WorkerHandle:
        """
        Starts a worker thread named "<task type>-<worker_name>".

        :raises WorkerThreadAlreadyExistsError: if a worker with the given name is still running.
        """

        if not worker_name.startswith(f"{task_type.value}-"):
            worker_name = f"{task_type.value}-{worker_name}"

        return self._start_worker(worker_name, task_type, target_fn)

    def start_command_worker(self, valve_name: str, target_fn: Callable) -> WorkerHandle:
        """
        Starts a worker executing a user command for one valve.

        :raises WorkerThreadAlreadyExistsError: if a command for the valve is still running.
        """

        return self.start_worker(f"command-{valve_name}", TaskType.COMMAND, target_fn)


    # ===========================================================================================================
    # Public API - Worker Shutdown
    # ===========================================================================================================

    def join_all_workers(self, task_type: TaskType | None = None, timeout: float = 10.0) -> None:
        """
        Join all running workers, optionally filtered by task type.

        :param task_type: if specified, only join workers of this type.
        :param timeout: maximum time to wait for each worker to join. Defaults to 10 seconds.
        :raises TimeoutError: if any worker fails to join within the given timeout.
        """

        self.logger.debug(f"Joining all workers of type '{task_type or 'any'}' with timeout {timeout} seconds.")
        with self._lock:
            workers_to_join = [
                worker_handle for worker_handle in self._workers.values()
                if task_type is None or worker_handle.task_type == task_type
            ]
        for worker_handle in workers_to_join:
            worker_handle.thread.join(timeout=timeout)
            if worker_handle.thread.is_alive():
                raise TimeoutError(f"Worker '{worker_handle.name}' failed to join within {timeout} seconds.")

        self.logger.debug(f"All workers of type '{task_type or 'any'}' have been joined.")


    # ===========================================================================================================
    # Private Methods
    # ===========================================================================================================

    def _start_worker(self, worker_name: str, task_type: TaskType, target_fn: Callable) -> WorkerHandle:
        def worker_wrapper():
            try:
                target_fn()
                self.logger.debug(f"Worker '{worker_name}' finalized.")
            except Exception as e:
                self.logger.error(f"Worker '{worker_name}' raised an unhandled exception: {e}")
            finally:
                with self._lock:
                    self._workers.pop(worker_name, None)

        with self._lock:
            if worker_name in self._workers:
                raise WorkerThreadAlreadyExistsError(f"Worker with name '{worker_name}' already exists.")

            t = threading.Thread(target=worker_wrapper, name=worker_name, daemon=True)
            handle = WorkerHandle(thread=t, name=worker_name, task_type=task_type)
            self._workers[worker_name] = handle
            t.start()
            return handle
