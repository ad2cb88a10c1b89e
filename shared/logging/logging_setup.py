from datetime import datetime
from pytz import timezone
import json
import logging.config
import logging
import os


debug_mode = os.getenv("LOG_LEVEL", "info").lower() == "debug"
loglevel = logging.INFO if not debug_mode else logging.DEBUG

APP_LOGGER_NAME = "doc_attachment_service"
RECONCILIATION_LOGGER_NAME = "reconciliation"

# extra fields a reconciliation record may carry
RECONCILIATION_FIELDS = ("reconciliation_event", "document_id", "attachment_id", "attachment_ids", "blob_keys")

_ANSI_RESET = "\033[0m"
_LEVEL_COLORS: dict[int, str] = {
    logging.DEBUG: "\033[36m",     # cyan
    logging.WARNING: "\033[33m",   # yellow
    logging.ERROR: "\033[31m",     # red
    logging.CRITICAL: "\033[35m",  # magenta
}


class CustomFormatter(logging.Formatter):
    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        try:
            original_msg = record.getMessage()
        except (TypeError, ValueError):
            original_msg = str(record.msg)

        # other handlers format the same record
        record = logging.makeLogRecord(record.__dict__)

        # Add prefix based on level
        if record.levelno >= logging.ERROR:
            record.msg = "⛔ " + original_msg
        elif record.levelno == logging.WARNING:
            record.msg = "⚠️ " + original_msg
        else:
            record.msg = original_msg

        # Clear args AFTER getting the message
        record.args = ()
        return super().format(record)


class LevelColorFormatter(CustomFormatter):
    """Console formatter that colors whole lines by level. INFO stays uncolored."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _LEVEL_COLORS.get(record.levelno, "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ReconciliationFormatter(logging.Formatter):
    """One JSON object per line, so a sweep can parse the file without regexes."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def format(self, record) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, self.tz).isoformat(),
            "event": getattr(record, "reconciliation_event", None),
            "message": record.getMessage(),
        }
        for field in RECONCILIATION_FIELDS[1:]:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        return json.dumps(entry, ensure_ascii=False)


def setup_logging() -> logging.Logger:
    """Configure console, app file and reconciliation file logging.

    Environment:
        ROOT_DIR:  Base directory; log files go to $ROOT_DIR/logs (default: cwd).
        TIMEZONE:  Timezone of the timestamps (default: Europe/Berlin).
        LOG_LEVEL: "debug" for verbose output, anything else for INFO.

    Returns:
        logging.Logger: The application logger.
    """
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": CustomFormatter,
                "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "tz_name": tz_name,
            },
            "colored": {
                "()": LevelColorFormatter,
                "format": "%(asctime)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "tz_name": tz_name,
            },
            "reconciliation": {
                "()": ReconciliationFormatter,
                "tz_name": tz_name,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "level": loglevel,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "level": loglevel,
                "filename": os.path.join(log_dir, "app.log"),
                "encoding": "utf-8",
            },
            # orphan blobs / orphan metadata / stale search text
            "reconciliation": {
                "class": "logging.FileHandler",
                "formatter": "reconciliation",
                "level": logging.WARNING,
                "filename": os.path.join(log_dir, "reconciliation.log"),
                "encoding": "utf-8",
            },
        },
        "loggers": {
            RECONCILIATION_LOGGER_NAME: {
                "handlers": ["reconciliation"],
                "level": logging.WARNING,
                "propagate": True,
            },
        },
        "root": {
            "handlers": ["console", "file"],
            "level": loglevel,
        },
    }

    logging.config.dictConfig(logging_config)

    # Suppress client library request logs unless in debug mode
    for noisy in ("httpx", "botocore", "aiobotocore", "aioboto3", "pymongo"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if debug_mode else logging.WARNING)

    return logging.getLogger(APP_LOGGER_NAME)
