import sys
from datetime import datetime
from typing import Callable, List, Optional

LEVELS = {
    "DEBUG": 0,
    "INFO": 1,
    "WARNING": 2,
    "ERROR": 3
}


def stderr_log_method(msg: str, level: str = "info") -> None:
    """Stand-in for plugin.log when running without a CLN plugin, CLN picks up stderr as well"""
    print(msg, file=sys.stderr)


class PluginLogger:
    """Logger class that is compatible with the CLN logging standard (formatting and to stderr)"""
    def __init__(self, name: str, log_method: Callable[..., None] = stderr_log_method,
                 level: Optional[str] = "INFO"):
        self.name = name
        self.level = level
        self.logger = log_method
        self.debug_buffer: List[str] = []  # replayed on error so failures come with their context
        self.debug_buffer_size = 15

    def debug(self, msg: str, override: bool = False):
        if self.is_enabled("DEBUG") or override:
            # CLN can log debug itself, but this way the plugin has its own debug mode independent of CLN
            self.logger(f"DEBUG: {msg}", level="info")
        else:
            self.append_to_buffer(msg)

    def info(self, msg: str):
        if self.is_enabled("INFO"):
            self.logger(msg, level="info")

    def warning(self, msg: str):
        if self.is_enabled("WARNING"):
            self.logger(f"WARNING: {msg}", level="info")  # CLN plugin log has no WARN

    def error(self, msg: str):
        self.replay_debug_buffer()
        self.logger(f"ERROR: {msg}", level="info")  # CLN plugin log has no ERROR

    def change_level(self, level: str):
        level = level.strip().upper()
        if level not in LEVELS:
            raise ValueError(f"Invalid log level: {level}")
        self.level = level

    def is_enabled(self, level: str) -> bool:
        """
        Check if the requested log level is equal or higher than the enabled level.
        Log levels hierarchy (from lowest to highest): DEBUG, INFO, WARNING, ERROR
        """
        enabled_level = LEVELS.get(self.level, 1)  # default to INFO if invalid level
        requested_level = LEVELS.get(level, 1)
        return requested_level >= enabled_level

    def append_to_buffer(self, msg: str) -> None:
        """Append a debug message to the buffer, delete the oldest if len is larger than max buffer size"""
        self.debug_buffer.append(f"buffered debug log from {datetime.now().isoformat()}: {msg}")
        if len(self.debug_buffer) > self.debug_buffer_size > 0:
            self.debug_buffer.pop(0)

    def replay_debug_buffer(self) -> None:
        if not self.debug_buffer:
            return
        self.debug("Replaying debug log buffer because of error:", override=True)
        for msg in self.debug_buffer:
            self.debug(msg, override=True)
        self.debug_buffer.clear()
