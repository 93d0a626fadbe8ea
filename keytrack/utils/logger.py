"""
Process-wide JSON logging for KeyTrack.

Every module asks for a child of the "keytrack" logger through get_logger();
the handlers hang off that one parent and are attached exactly once.

Environment:
    KEYTRACK_LOG_LEVEL    Console level (default DEBUG)
    KEYTRACK_LOG_TO_FILE  Also write logs/keytrack.log and logs/errors.log (default True)
    KEYTRACK_LOG_DIR      Directory for the log files (default "logs")
"""

import json
import logging
import os
import threading
from pathlib import Path

ROOT_LOGGER_NAME = "keytrack"

# Output key -> LogRecord attribute
DEFAULT_FIELDS = {
    "time": "asctime",
    "level": "levelname",
    "logger": "name",
    "module": "module",
    "function": "funcName",
    "line": "lineno",
    "message": "message",
}

# Passed through when a caller supplies them with extra={...}
CONTEXT_FIELDS = ("org_id", "asset_id", "actor_id")


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


class JsonFormatter(logging.Formatter):
    """
    Renders each record as one JSON object per line.

    Args:
        fields: Output key -> LogRecord attribute map
        time_format: strftime format for "asctime"
    """

    def __init__(self, fields: dict = None, time_format: str = "%Y-%m-%dT%H:%M:%S"):
        super().__init__(datefmt=time_format)
        self.fields = dict(fields or DEFAULT_FIELDS)
        self.default_msec_format = "%s.%03dZ"

    def usesTime(self) -> bool:
        return "asctime" in self.fields.values()

    def to_dict(self, record: logging.LogRecord) -> dict:
        record.message = record.getMessage()
        if self.usesTime():
            record.asctime = self.formatTime(record, self.datefmt)

        payload = {key: getattr(record, attribute, None) for key, attribute in self.fields.items()}
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            payload["exc_info"] = record.exc_text
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return payload

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self.to_dict(record), default=str)


class SingletonLogger:
    """Attaches the KeyTrack handlers once per process and hands out child loggers"""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._root = None
                    cls._instance = instance
        return cls._instance

    @property
    def root(self) -> logging.Logger:
        if self._root is None:
            with self._lock:
                if self._root is None:
                    self._root = self._configure()
        return self._root

    def get_logger(self, name: str = ROOT_LOGGER_NAME) -> logging.Logger:
        """
        Args:
            name: Dotted name; anything outside "keytrack." is nested under it
        """
        root = self.root
        if name == ROOT_LOGGER_NAME:
            return root
        if not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        return logging.getLogger(name)

    @staticmethod
    def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
        # Truncated at startup so each run starts with a clean file
        handler = logging.FileHandler(path, mode='w', encoding='utf-8')
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    def _configure(self) -> logging.Logger:
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(logging.DEBUG)
        root.propagate = False
        root.handlers.clear()

        formatter = JsonFormatter()

        console = logging.StreamHandler()
        console.setLevel(os.environ.get('KEYTRACK_LOG_LEVEL', 'DEBUG').upper())
        console.setFormatter(formatter)
        root.addHandler(console)

        if _flag('KEYTRACK_LOG_TO_FILE', 'True'):
            log_dir = Path(os.environ.get('KEYTRACK_LOG_DIR', 'logs'))
            log_dir.mkdir(parents=True, exist_ok=True)
            root.addHandler(self._file_handler(log_dir / "keytrack.log", logging.INFO, formatter))
            root.addHandler(self._file_handler(log_dir / "errors.log", logging.ERROR, formatter))

        return root


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Logger from the KeyTrack hierarchy, e.g. get_logger("keytrack.lifecycle")"""
    return SingletonLogger().get_logger(name)
