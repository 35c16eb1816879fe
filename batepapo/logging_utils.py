"""Logging setup with local timezone timestamps."""

import logging
import time


class LocalTimeFormatter(logging.Formatter):
    """Formatter that renders ``asctime`` in local time instead of UTC."""

    converter = time.localtime

    def formatTime(self, record, datefmt=None):
        ct = self.converter(record.created)
        if datefmt:
            return time.strftime(datefmt, ct)
        s = time.strftime("%Y-%m-%d %H:%M:%S", ct)
        return f"{s},{int(record.msecs):03d}"


class HealthCheckAccessFilter(logging.Filter):
    """Drop GET /health from uvicorn access log."""

    def filter(self, record: logging.LogRecord) -> bool:
        return "GET /health " not in record.getMessage()


def configure_logging(level: str = "INFO") -> None:
    """Attach a local-time stream handler to the root logger (once)."""
    root = logging.getLogger()
    if not any(isinstance(h.formatter, LocalTimeFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            LocalTimeFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        root.addHandler(handler)
    root.setLevel(level.upper())

    # pymongo logs every heartbeat/command at DEBUG/INFO in recent releases
    logging.getLogger("pymongo").setLevel(logging.WARNING)
