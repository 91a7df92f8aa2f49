# sprinkler_bridge/utils/logger.py

import logging
import os
import threading
from collections import deque
from logging.handlers import TimedRotatingFileHandler


BASE_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "../..")
)

ROOT_LOGGER_NAME = "sprinkler_bridge"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FILE_NAME = "bridge_log.log"
LOG_BACKUP_DAYS = 30


class DashboardLogHandler(logging.Handler):
    """Keeps the last few formatted records in memory for the rich dashboard."""

    def __init__(self, max_logs=5):
        super().__init__(level=logging.INFO)
        self.logs = deque(maxlen=max_logs)

    def emit(self, record):
        try:
            self.logs.append((record.levelname, self.format(record)))
        except Exception:
            self.handleError(record)


_setup_lock = threading.Lock()
_dashboard_handler: DashboardLogHandler | None = None
_console_handler: logging.Handler | None = None


def _root_logger() -> logging.Logger:
    """
    Configure the bridge's root logger on first use.

    Every bridge logger is a child of it, so the daily rotated log file and the dashboard
    handler are attached once, here. The log directory can be moved with SPRINKLER_BRIDGE_LOG_DIR.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    with _setup_lock:
        if root.handlers:
            return root

        log_dir = os.environ.get("SPRINKLER_BRIDGE_LOG_DIR", os.path.join(BASE_DIR, "runtime", "logs"))
        os.makedirs(log_dir, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            when="midnight",
            backupCount=LOG_BACKUP_DAYS,
            encoding="utf-8",
            delay=True,
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

        root.setLevel(logging.DEBUG)
        root.addHandler(file_handler)
        root.addHandler(_get_dashboard_handler())
        root.propagate = False
    return root


def _get_dashboard_handler(max_logs=5) -> DashboardLogHandler:
    global _dashboard_handler
    if _dashboard_handler is None:
        _dashboard_handler = DashboardLogHandler(max_logs=max_logs)
        _dashboard_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    elif _dashboard_handler.logs.maxlen != max_logs:
        _dashboard_handler.logs = deque(_dashboard_handler.logs, maxlen=max_logs)
    return _dashboard_handler


def get_logger(name: str) -> logging.Logger:
    _root_logger()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def get_dashboard_log_handler(max_logs=5) -> DashboardLogHandler:
    """The in-memory handler the dashboard reads its log panel from."""
    _root_logger()
    return _get_dashboard_handler(max_logs)


def enable_console_logging(level: int = logging.WARNING) -> None:
    """Also write bridge logs at `level` and above to stderr (used when no dashboard is running)."""
    global _console_handler
    root = _root_logger()
    if _console_handler is None:
        _console_handler = logging.StreamHandler()
        _console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_console_handler)
    _console_handler.setLevel(level)
