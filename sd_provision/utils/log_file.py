"""
Append-only provisioning log file.

Each record is written as `YYYY-MM-DD HH:MM:SS - <message>`. The file is
opened and closed for every record, so no handle outlives a log call and the
file can be rotated or inspected at any time.
"""

import logging
from pathlib import Path

from rich.errors import MarkupError
from rich.text import Text

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT = "%(asctime)s - %(message)s"


class PlainFormatter(logging.Formatter):
    """Formats records for the log file, stripping Rich console markup."""

    def __init__(self):
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        try:
            plain = Text.from_markup(record.message).plain
        except MarkupError:
            plain = record.message
        record_copy = logging.makeLogRecord(record.__dict__)
        record_copy.message = plain
        return super().formatMessage(record_copy)


class AppendingFileHandler(logging.Handler):
    """A handler that appends one line per record and never holds the file open."""

    def __init__(self, path: Path, level: int = logging.NOTSET):
        super().__init__(level)
        self.path = Path(path)
        self.setFormatter(PlainFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            self.handleError(record)


def attach_log_file(
    path: Path, logger_name: str = "sd_provision", level: int = logging.INFO
) -> AppendingFileHandler:
    """
    Attaches an AppendingFileHandler for `path` to the named logger.

    Attaching the same path twice returns the existing handler.
    """
    logger = logging.getLogger(logger_name)
    resolved = Path(path).expanduser().resolve()
    for handler in logger.handlers:
        if isinstance(handler, AppendingFileHandler) and handler.path == resolved:
            return handler

    handler = AppendingFileHandler(resolved, level=level)
    logger.addHandler(handler)
    return handler


def detach_log_file(handler: AppendingFileHandler, logger_name: str = "sd_provision") -> None:
    logging.getLogger(logger_name).removeHandler(handler)
    handler.close()
