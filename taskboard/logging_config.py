# taskboard/logging_config.py
import json
import logging
import logging.config

from .config import LOG_FORMAT, LOG_LEVEL


class JSONFormatter(logging.Formatter):
    """One JSON object per line; threadName tells page runs from scheduler jobs"""

    FIELDS = ("levelname", "name", "threadName")

    def format(self, record: logging.LogRecord) -> str:
        entry = {"time": self.formatTime(record), "msg": record.getMessage()}
        entry.update((f, getattr(record, f)) for f in self.FIELDS)
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def init_logging(level: str = LOG_LEVEL, fmt: str = LOG_FORMAT) -> None:
    # dictConfig replaces the root handlers, so streamlit reruns don't stack them
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {"format": "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"},
            "json": {"()": JSONFormatter},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "json" if fmt == "json" else "text"},
        },
        "root": {"level": str(level).upper(), "handlers": ["console"]},
        "loggers": {
            "urllib3": {"level": "WARNING"},
            # logs every job run at INFO
            "apscheduler": {"level": "WARNING"},
        },
    })
