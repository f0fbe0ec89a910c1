from __future__ import annotations
import logging
import time
from typing import Optional, Callable


class EventLogger:
    """Levelled session logger that can also forward to a UI callback and a file.

    Lines go to the stdlib logger of the same name as well, so an app-level
    `logging.basicConfig` picks them up without the tracker knowing about it.
    """

    def __init__(self, name: str = "head_tracking", ui_logger: Optional[Callable[[str], None]] = None,
                 log_file_path: Optional[str] = None):
        self.name = name
        self.ui_logger = ui_logger
        self.log_file_path = log_file_path
        self._logger = logging.getLogger(name)
        self._file = None
        if log_file_path:
            try:
                self._file = open(log_file_path, "a", encoding="utf-8")
            except OSError as e:
                self._logger.warning("cannot open session log %s: %s", log_file_path, e)
                self._file = None

    def _emit(self, level: int, msg: str):
        self._logger.log(level, msg)
        ts = time.strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{ts}] {self.name} {logging.getLevelName(level)}: {msg}"
        if self.ui_logger:
            try:
                self.ui_logger(line)
            except Exception:
                self._logger.exception("ui logger failed")
        if self._file:
            try:
                self._file.write(line + "\n")
                self._file.flush()
            except OSError:
                self._logger.exception("session log write failed")

    def info(self, msg: str):
        self._emit(logging.INFO, msg)

    def debug(self, msg: str):
        self._emit(logging.DEBUG, msg)

    def warning(self, msg: str):
        self._emit(logging.WARNING, msg)

    def error(self, msg: str):
        self._emit(logging.ERROR, msg)

    def close(self):
        if self._file:
            try:
                self._file.close()
            except OSError:
                pass
            self._file = None
