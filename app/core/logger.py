import json
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Final

from app.core.config import get_settings
from app.core.trace import get_trace_id

LOG_DIR: Final[Path] = Path(__file__).resolve().parent.parent / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

settings = get_settings()
LOG_ROTATE_MB: Final[int] = settings.log_rotate_mb
LOG_RETENTION_DAYS: Final[int] = settings.log_retention_days

# Record attributes set by logging itself; anything else came from `extra=`.
_RESERVED_ATTRS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys() | {"message", "asctime"}
)


class JsonFormatter(logging.Formatter):
    """Serialise log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "category": record.name,
            "message": record.getMessage(),
            "trace_id": get_trace_id() or None,
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in log_record:
                log_record[key] = value
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, ensure_ascii=False, default=str)


class SizeAndTimeRotatingFileHandler(TimedRotatingFileHandler):
    """Rotate on size as well as on time."""

    def __init__(
        self,
        filename: str | Path,
        max_bytes: int = 0,
        backup_count: int = 0,
        when: str = "midnight",
        interval: int = 1,
        encoding: str | None = "utf-8",
        delay: bool = False,
        utc: bool = False,
    ) -> None:
        self.maxBytes = max_bytes
        super().__init__(
            str(filename),
            when=when,
            interval=interval,
            backupCount=backup_count,
            encoding=encoding,
            delay=delay,
            utc=utc,
        )

    def shouldRollover(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if self.maxBytes > 0:
            if self.stream is None:  # pragma: no cover
                self.stream = self._open()
            msg = f"{self.format(record)}\n"
            if (self.stream.tell() + len(msg.encode(self.encoding or "utf-8"))) >= self.maxBytes:
                return True
        return super().shouldRollover(record)


def _build_logger(name: str, file_path: Path | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:  # avoid duplicate handlers on reload
        return logger

    if file_path is None:
        file_path = LOG_DIR / f"{name}.jsonl"
    handler = SizeAndTimeRotatingFileHandler(
        file_path,
        max_bytes=LOG_ROTATE_MB * 1024 * 1024,
        backup_count=LOG_RETENTION_DAYS,
    )
    handler.setFormatter(JsonFormatter())
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


_LOGGERS: dict[str, logging.Logger] = {}


def get_logger(name: str) -> logging.Logger:
    """Return the named JSON logger, creating it on first use."""
    if name not in _LOGGERS:
        _LOGGERS[name] = _build_logger(name)
    return _LOGGERS[name]


server = get_logger("server")
chat = get_logger("chat")
search = get_logger("search")
