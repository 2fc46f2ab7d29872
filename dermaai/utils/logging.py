"""
Structured Logging Configuration

One line per event, tagged with the case id when the event belongs to a
case. Console output is coloured on a TTY; the optional log file is plain.
"""
import logging
import sys
from typing import Optional
from datetime import datetime, timezone

# SDK loggers that emit a line per HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "google_genai", "langchain_google_genai")


class StructuredFormatter(logging.Formatter):
    """Formatter producing `[timestamp] LEVEL [logger] (case) message`."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        case_id = getattr(record, "case_id", None)
        case_tag = f"({case_id}) " if case_id else ""

        if self.use_colors:
            color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
            reset = self.COLORS['RESET']
        else:
            color = reset = ""

        log_message = (
            f"{color}[{timestamp}] {record.levelname:8} [{record.name}] "
            f"{case_tag}{record.getMessage()}{reset}"
        )
        if record.exc_info:
            log_message += f"\n{self.formatException(record.exc_info)}"
        return log_message


class CaseLoggerAdapter(logging.LoggerAdapter):
    """Attaches a case id to every record it emits."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("case_id", self.extra.get("case_id"))
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for plain-text log output
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter(use_colors=sys.stdout.isatty()))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module (typically `__name__`)."""
    return logging.getLogger(name)


def get_case_logger(name: str, case_id: str) -> CaseLoggerAdapter:
    """Logger whose records carry `case_id`."""
    return CaseLoggerAdapter(logging.getLogger(name), {"case_id": case_id})
