"""
Console logging for flow runs
"""

import os
import sys
from enum import Enum


class LogLevel(Enum):
    """Log levels"""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    DEBUG = "DEBUG"


class Logger:
    """Console logger with emoji prefixes"""

    def __init__(self, verbose: bool = True):
        self.verbose = verbose

    def _log(self, level: LogLevel, message: str, emoji: str = ""):
        if not self.verbose and level == LogLevel.DEBUG:
            return

        prefix = f"{emoji} " if emoji else ""
        stream = sys.stderr if level == LogLevel.ERROR else sys.stdout
        print(f"{prefix}{message}", file=stream)

    def info(self, message: str, emoji: str = "ℹ️"):
        self._log(LogLevel.INFO, message, emoji)

    def success(self, message: str):
        self._log(LogLevel.INFO, message, "✅")

    def warning(self, message: str):
        self._log(LogLevel.WARNING, message, "⚠️")

    def error(self, message: str):
        self._log(LogLevel.ERROR, message, "❌")

    def debug(self, message: str):
        self._log(LogLevel.DEBUG, message, "🔍")

    def step(self, message: str):
        self._log(LogLevel.INFO, message, "📍")

    def skip(self, message: str):
        self._log(LogLevel.INFO, message, "⏭️")

    def ai(self, message: str):
        self._log(LogLevel.INFO, message, "🤖")


# Global logger instance
logger = Logger(verbose=os.getenv("INTENTFLOW_VERBOSE", "true").lower() != "false")
