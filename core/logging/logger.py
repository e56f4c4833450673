"""
Centralized logging configuration for the prefetch viewer.

Uses rotating file handler with logs stored in logs/ directory.
Includes colored console output for debug mode.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Tuple


_VERBOSE: bool = False
# Base directory for logs. Defaults to the project root; setup_logging() may
# point it somewhere else so get_log_dir() always matches the active handler.
_BASE_DIR: Path = Path(__file__).parent.parent.parent

LOG_FILE_NAME = "prefetch_viewer.log"
LOG_FORMAT = '%(asctime)s - %(name)-30s - %(levelname)-8s - %(message)s'


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',       # Cyan
        'INFO': '\033[32m',        # Green
        'WARNING': '\033[33m',     # Yellow
        'ERROR': '\033[31m',       # Red
        'CRITICAL': '\033[35m',    # Magenta
    }
    FALLBACK_COLOR = '\033[38;5;208m'
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record):
        original_levelname = record.levelname

        if '[FALLBACK]' in str(record.msg):
            # Fallback paths stand out regardless of level
            color = self.FALLBACK_COLOR
        else:
            color = self.COLORS.get(record.levelname)

        if color is None:
            return super().format(record)

        record.levelname = f"{self.BOLD}{color}{record.levelname}{self.RESET}"
        try:
            message = super().format(record)
        finally:
            record.levelname = original_levelname
        return f"{color}{message}{self.RESET}"


class SuppressingStreamHandler(logging.StreamHandler):
    """Console handler that collapses bursts from one logger.

    Consecutive DEBUG/INFO records with the same logger name and level are
    shown once, followed by a "[N Suppressed: CHECK LOG]" line when the burst
    ends. Warnings and errors are always shown. The log file is unaffected.
    """

    def __init__(self, stream=None):
        super().__init__(stream)
        self._burst_key: Optional[Tuple[str, int]] = None
        self._burst_head: Optional[logging.LogRecord] = None
        self._suppressed = 0

    def emit(self, record: logging.LogRecord) -> None:
        try:
            key = (record.name, record.levelno)
            if record.levelno < logging.WARNING and key == self._burst_key:
                self._suppressed += 1
                return
            self._end_burst()
            self._write(record)
            if record.levelno < logging.WARNING:
                self._burst_key, self._burst_head = key, record
        except Exception:
            self.handleError(record)

    def _end_burst(self) -> None:
        head, count = self._burst_head, self._suppressed
        self._burst_key, self._burst_head, self._suppressed = None, None, 0
        if head is None or count == 0:
            return
        summary = logging.makeLogRecord(head.__dict__)
        summary.msg = f"[{count} Suppressed: CHECK LOG]"
        summary.args = None
        summary.exc_info = summary.exc_text = None
        self._write(summary)

    def _write(self, record: logging.LogRecord) -> None:
        if self.stream is None:
            return
        text = self.format(record) + self.terminator
        try:
            self.stream.write(text)
        except UnicodeEncodeError:
            # Narrow console encodings (cp1252 and friends)
            encoding = getattr(self.stream, "encoding", None) or "ascii"
            self.stream.write(text.encode(encoding, errors="replace").decode(encoding))
        self.flush()

    def close(self) -> None:
        try:
            self._end_burst()
        finally:
            super().close()


def get_log_dir() -> Path:
    """Return the directory used for log files."""
    return _BASE_DIR / "logs"


def setup_logging(debug: bool = False, verbose: bool = False, log_dir: Optional[Path] = None) -> None:
    """
    Configure application logging with file rotation.

    Args:
        debug: If True, set log level to DEBUG and enable console output.
        verbose: Enables high-volume debug logs (per-eviction lines, raw
            settings dumps, third-party HTTP chatter). Implies debug.
        log_dir: Optional override for the directory holding the log file.
    """
    global _VERBOSE, _BASE_DIR

    debug_enabled = debug or verbose
    if log_dir is not None:
        _BASE_DIR = Path(log_dir).parent
        target_dir = Path(log_dir)
    else:
        target_dir = get_log_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug_enabled else logging.INFO

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    # File handler with rotation (1MB max, keep 5 backups)
    file_handler = RotatingFileHandler(
        target_dir / LOG_FILE_NAME,
        maxBytes=1 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(file_handler)

    if debug_enabled:
        console_handler = SuppressingStreamHandler(sys.stdout)
        if sys.stdout.isatty():
            console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt='%H:%M:%S'))
        else:
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

    # HTTP connection pools and Pillow plugin probing only show up in
    # verbose mode.
    noisy_level = logging.DEBUG if verbose else logging.INFO
    for name in ("urllib3", "urllib3.connectionpool", "PIL"):
        logging.getLogger(name).setLevel(noisy_level)

    _VERBOSE = bool(verbose)

    root_logger.info("=" * 60)
    root_logger.info(
        "Prefetch viewer logging initialized (debug=%s, verbose=%s)",
        debug_enabled,
        _VERBOSE,
    )
    root_logger.info("=" * 60)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def is_verbose_logging() -> bool:
    """Return True when verbose debug logging is enabled globally."""
    return _VERBOSE
